from __future__ import annotations

import logging

from ..config import format_size
from ..context import InstallContext
from ..errors import PreflightError, UserAbort
from ..pipeline import PhaseState

logger = logging.getLogger(__name__)


class ConfirmStep:
    """Summary plus the one and only confirmation question.

    In dry-run the summary is the end of the run; nothing is asked.
    """

    state = PhaseState.CONFIRMED

    def run(self, ctx: InstallContext) -> None:
        cfg = ctx.config
        plan = ctx.plan
        if plan is None:
            raise PreflightError("No disk layout was planned")

        items = cfg.summary_items()
        items += [
            ("Partitions", ", ".join(self._describe(plan, i) for i in (1, 2, 3, 4))),
        ]
        ctx.prompter.summary("Installation Summary", items)

        if cfg.dry_run:
            logger.info("Dry run: summary shown, nothing confirmed; exiting before making changes.")
            return

        if plan.preserve_existing:
            warning = f"This will ERASE partitions 1-3 on {plan.disk} (keeping {plan.device(4)})."
        else:
            warning = f"This will ERASE ALL DATA on {plan.disk}."
        ctx.prompter.console.print(f"[bold red]{warning}[/bold red]")

        if not ctx.prompter.confirm("Proceed with installation?", default=False, unattended_answer=True):
            raise UserAbort("Installation aborted by user.")

        ctx.confirm()
        logger.info("Configuration confirmed; continuing unattended")

    @staticmethod
    def _describe(plan, index: int) -> str:
        spec = plan.partitions[index - 1]
        size = "rest" if spec.is_remainder else format_size(spec.size_bytes or 0)
        keep = " kept" if not spec.recreate else ""
        return f"{plan.device(index)} {spec.label} {size}{keep}"
