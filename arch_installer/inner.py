"""Entry point inside the installed root.

    python3 -m arch_installer.inner /root/arch-install/envelope.json

The envelope file is the only input; nothing is read from the environment.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

from .envelope import load_envelope
from .errors import InstallerError
from .logging_utils import CHROOT_LOG_PATH, configure_logging
from .orchestrator import PhaseOrchestrator

logger = logging.getLogger(__name__)


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="arch-installer-inner")
    p.add_argument("envelope", help="Path of the boundary envelope (JSON)")
    p.add_argument("--log", default=CHROOT_LOG_PATH, help="Path of the chroot-side log")
    args = p.parse_args(argv)

    try:
        envelope = load_envelope(args.envelope)
    except InstallerError as e:
        print(f"error: {e}", file=sys.stderr)
        return e.exit_code

    configure_logging(
        log_path=args.log,
        level=logging.DEBUG if envelope.config.debug else logging.INFO,
        truncate=False,
    )
    logger.info("Inner installer started at %s", envelope.resume_from.name)

    try:
        return PhaseOrchestrator.from_envelope(envelope).run()
    except InstallerError as e:
        logger.exception("Chroot phase failed (%s)", e.kind)
        print(f"error: {e}", file=sys.stderr)
        return e.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
