from __future__ import annotations

import logging
import re

from ..config import DEFAULT_ROOT_SIZE, format_size, parse_size
from ..context import InstallContext
from ..errors import PreflightError
from ..lib import disk_plan
from ..lib.block import is_block_device
from ..lib.geo import valid_timezone
from ..lib.hwdetect import describe_disk, list_disks, read_mem_total_bytes
from ..pipeline import PhaseState

logger = logging.getLogger(__name__)

_USERNAME_RE = re.compile(r"^[a-z_][a-z0-9_-]{0,31}$")
_HOSTNAME_RE = re.compile(r"^[A-Za-z0-9]([A-Za-z0-9-]{0,61}[A-Za-z0-9])?$")


def valid_username(value: str) -> bool:
    return bool(_USERNAME_RE.match(value))


def valid_hostname(value: str) -> bool:
    return bool(_HOSTNAME_RE.match(value))


def valid_size(value: str) -> bool:
    try:
        return parse_size(value) > 0
    except ValueError:
        return False


class ConfigureStep:
    """Collects every answer the run needs, before the confirmation checkpoint.

    Order: location lookup, username, hostname, timezone, passwords, disk,
    swap size, root size, wipe-or-keep /home. Values already present in the
    config are not asked for again.
    """

    state = PhaseState.CONFIGURING

    def run(self, ctx: InstallContext) -> None:
        self.detect_location(ctx)
        self.ask_identity(ctx)
        self.ask_timezone(ctx)
        self.ask_passwords(ctx)
        self.ask_disk(ctx)
        self.ask_sizes(ctx)
        self.plan_layout(ctx)

    def detect_location(self, ctx: InstallContext) -> None:
        cfg = ctx.config
        if cfg.timezone != "UTC" and cfg.mirror_country:
            return
        ctx.location = ctx.resolver.resolve()
        if not cfg.mirror_country and ctx.location.country:
            ctx.update_config(mirror_country=ctx.location.country)

    def ask_identity(self, ctx: InstallContext) -> None:
        p = ctx.prompter
        cfg = ctx.config
        username = cfg.username or p.ask(
            "Username",
            validate=valid_username,
            invalid_msg="Use lowercase letters, digits, '-' and '_'.",
        )
        if not valid_username(username):
            raise PreflightError(f"Invalid username: {username!r}")
        hostname = cfg.hostname or p.ask(
            "Hostname",
            validate=valid_hostname,
            invalid_msg="Use letters, digits and '-'.",
        )
        if not valid_hostname(hostname):
            raise PreflightError(f"Invalid hostname: {hostname!r}")
        ctx.update_config(username=username, hostname=hostname)
        logger.info("Username: %s, hostname: %s", username, hostname)

    def ask_timezone(self, ctx: InstallContext) -> None:
        zoneinfo = ctx.resolver.zoneinfo
        tz = ctx.config.timezone
        if tz == "UTC":
            tz = ctx.prompter.ask(
                "Timezone (e.g. Europe/Berlin)",
                default=ctx.location.timezone or "UTC",
                validate=lambda v: valid_timezone(v, zoneinfo) is not None,
                invalid_msg="Unknown timezone.",
            )
        elif valid_timezone(tz, zoneinfo) is None:
            raise PreflightError(f"Invalid timezone: {tz}")
        ctx.update_config(timezone=tz)
        logger.info("Timezone: %s", tz)

    def ask_passwords(self, ctx: InstallContext) -> None:
        p = ctx.prompter
        cfg = ctx.config
        root_pw = cfg.root_password or p.ask_password("Root password")
        user_pw = cfg.user_password or p.ask_password(f"Password for {cfg.username}")
        ctx.update_config(root_password=root_pw, user_password=user_pw)

    def ask_disk(self, ctx: InstallContext) -> None:
        disk = ctx.config.target_disk
        if not disk:
            disks = list_disks()
            if not disks:
                raise PreflightError("No suitable block devices found.")
            disk = ctx.prompter.select(
                "Select installation disk",
                [d.path for d in disks],
                details=[f"{d.size} {d.model}  {describe_disk(d.path)}".strip() for d in disks],
                default=disks[0].path if len(disks) == 1 else "",
            )
        if not is_block_device(disk):
            raise PreflightError(f"{disk} is not a block device")
        ctx.update_config(target_disk=disk)
        logger.info("Target disk: %s", disk)

    def ask_sizes(self, ctx: InstallContext) -> None:
        p = ctx.prompter
        cfg = ctx.config
        swap = cfg.swap_size
        if not swap:
            auto = format_size(disk_plan.compute_swap_bytes(read_mem_total_bytes()))
            swap = p.ask("Swap size", default=auto, validate=valid_size, invalid_msg="Use a size like 16G.")
        root = cfg.root_size
        if not root:
            root = p.ask(
                "Root partition size", default=DEFAULT_ROOT_SIZE, validate=valid_size, invalid_msg="Use a size like 128G."
            )
        ctx.update_config(swap_size=swap, root_size=root)
        logger.info("Swap size: %s, root size: %s", swap, root)

    def plan_layout(self, ctx: InstallContext) -> None:
        cfg = ctx.config
        home_dev = disk_plan.partition_path(cfg.target_disk, 4)
        existing = is_block_device(home_dev)

        decision = disk_plan.resolve_wipe_choice(existing, cfg.wipe_home)
        if decision is disk_plan.WipeDecision.ASK:
            logger.warning("Existing partition detected at %s (possibly /home)", home_dev)
            wipe = ctx.prompter.confirm(
                f"Wipe {home_dev}? Answer no to keep your existing /home data",
                default=False,
                unattended_answer=True,
            )
            decision = disk_plan.WipeDecision.WIPE if wipe else disk_plan.WipeDecision.PRESERVE
        cfg = ctx.update_config(wipe_home=decision.value)

        ctx.plan = disk_plan.plan(
            cfg.target_disk,
            read_mem_total_bytes(),
            existing,
            cfg.wipe_home,
            efi_size=cfg.efi_size,
            root_size=cfg.root_size,
            swap_override=cfg.swap_size,
            fs_type=cfg.fs_type,
        ).validate(existing)
