from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Optional

DEFAULT_LOG_PATH = "/var/log/arch-install.log"
CHROOT_LOG_PATH = "/var/log/arch-install-chroot.log"


def configure_logging(
    log_path: str = DEFAULT_LOG_PATH,
    level: int = logging.INFO,
    also_console: bool = True,
    truncate: bool = False,
) -> str:
    """Configure logging.

    The outer installer truncates the run log at startup; the chroot side
    appends to its own file inside the installed root.

    Notes:
    - In some live environments, writing to /var/log may not be permitted.
      We still *attempt* to write there first; if it fails, we fall back to
      a local file in the working directory.
    - Console output stays at INFO even with --debug so command output only
      lands in the file.

    Returns the actual file path being used.
    """

    logger = logging.getLogger()
    logger.setLevel(level)

    # Avoid duplicate handlers if configure_logging() is called multiple times.
    if getattr(logger, "_arch_installer_configured", False):
        return getattr(logger, "_arch_installer_log_path", log_path)

    mode = "w" if truncate else "a"
    chosen_path = log_path
    handlers: list[logging.Handler] = []

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    file_handler: Optional[logging.Handler] = None
    try:
        Path(os.path.dirname(log_path) or ".").mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode=mode, encoding="utf-8")
    except OSError:
        # Fall back to a writable location.
        chosen_path = str(Path.cwd() / Path(log_path).name)
        file_handler = logging.FileHandler(chosen_path, mode=mode, encoding="utf-8")
    file_handler.setFormatter(fmt)
    handlers.append(file_handler)

    if also_console:
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
        console.setLevel(logging.INFO)
        handlers.append(console)

    for h in handlers:
        logger.addHandler(h)

    setattr(logger, "_arch_installer_configured", True)
    setattr(logger, "_arch_installer_log_path", chosen_path)

    logging.getLogger(__name__).info(
        "Logging initialized (requested=%s, actual=%s)", log_path, chosen_path
    )
    return chosen_path


def reset_logging() -> None:
    """Drop handlers installed by configure_logging (used by tests)."""

    logger = logging.getLogger()
    if not getattr(logger, "_arch_installer_configured", False):
        return
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    setattr(logger, "_arch_installer_configured", False)


def copy_log_into_target(log_path: str, target_root: str) -> Optional[str]:
    """Copy the run log into the installed system at the same path."""

    src = Path(log_path)
    if not src.exists():
        return None
    dst = Path(target_root) / str(src).lstrip("/")
    for h in logging.getLogger().handlers:
        h.flush()
    try:
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dst)
    except OSError as e:
        logging.getLogger(__name__).warning("Could not copy log into %s: %s", dst, e)
        return None
    return str(dst)
