from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import replace
from typing import Any, Dict, Mapping, Optional

from . import __version__
from .config import PASSWORD_ENV, InstallConfig, defaults_from_env, load_config_file, merge, validate
from .errors import InstallerError
from .logging_utils import configure_logging
from .orchestrator import PhaseOrchestrator

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="arch-installer",
        description="Install an Arch Linux workstation onto a single UEFI disk.",
    )
    p.add_argument("--disk", dest="target_disk", help="Target disk (e.g. /dev/nvme0n1)")
    p.add_argument("--hostname", help="Hostname of the new system")
    p.add_argument("--user", dest="username", help="Name of the user account to create")
    p.add_argument("--timezone", help="Timezone, e.g. Europe/Berlin (default: detected)")
    p.add_argument("--locale", help="Locale (default: en_US.UTF-8)")
    p.add_argument("--keymap", help="Console keymap (default: us)")
    p.add_argument("--fs-type", dest="fs_type", choices=["ext4", "btrfs"], help="Root and home filesystem")
    p.add_argument("--swap", dest="swap_size", help="Swap size, e.g. 16G (default: RAM, at least 8G)")
    p.add_argument("--root-size", dest="root_size", help="Root partition size (default: 128G)")
    p.add_argument("--wipe-home", dest="wipe_home", choices=["yes", "no"], help="Wipe or keep an existing /home partition")
    p.add_argument("--mirror-country", dest="mirror_country", help="Two-letter country code for mirror ranking")
    p.add_argument("--config", dest="config_file", help="Override file (KEY=VALUE lines or YAML)")
    p.add_argument("--auto", action="store_true", default=None, help="Unattended mode: never prompt")
    p.add_argument("--dry-run", dest="dry_run", action="store_true", default=None, help="Stop after the summary")
    p.add_argument("--debug", action="store_true", default=None, help="Verbose log file")
    p.add_argument("--log", dest="log_file", help="Path of the run log")
    p.add_argument("--reboot", action="store_true", default=None, help="Reboot when the installation completes")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def _cli_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    values = vars(args).copy()
    values.pop("config_file", None)
    return {k: v for k, v in values.items() if v is not None}


def load_config(args: argparse.Namespace, environ: Optional[Mapping[str, str]] = None) -> InstallConfig:
    """defaults (built-in + environment) < config file < command line."""

    defaults = defaults_from_env(environ)
    file_overrides = load_config_file(args.config_file) if args.config_file else {}
    cfg = merge(defaults, file_overrides, _cli_overrides(args))
    env = os.environ if environ is None else environ
    password = env.get(PASSWORD_ENV, "")
    if cfg.auto and password and not cfg.root_password:
        # --auto on the command line; the environment layer could not know.
        cfg = replace(cfg, root_password=password, user_password=cfg.user_password or password)
    return validate(cfg)


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        cfg = load_config(args)
    except InstallerError as e:
        print(f"error: {e}", file=sys.stderr)
        return e.exit_code

    actual_log = configure_logging(
        log_path=cfg.log_file,
        level=logging.DEBUG if cfg.debug else logging.INFO,
        truncate=True,
    )
    logger.info("arch-installer %s started (log: %s)", __version__, actual_log)
    if cfg.dry_run:
        logger.info("DRY RUN mode: no changes will be made.")

    try:
        return PhaseOrchestrator(cfg).run()
    except InstallerError as e:
        logger.exception("Installer failed (%s)", e.kind)
        print(f"error: {e}", file=sys.stderr)
        return e.exit_code
    except KeyboardInterrupt:
        logger.error("Interrupted")
        print("error: interrupted", file=sys.stderr)
        return 130
