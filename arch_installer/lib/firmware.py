from __future__ import annotations

from pathlib import Path

from .env import PATHS


def detect_firmware(efivars: str = PATHS.efivars) -> str:
    """Detect firmware type for the *currently running* environment.

    Returns: 'uefi' or 'bios'. Only UEFI is installable; efivars must be
    present (a bare /sys/firmware/efi is not enough for bootctl).
    """

    if Path(efivars).is_dir():
        return "uefi"
    return "bios"
