from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from .command import have_cmd, run_cmd

logger = logging.getLogger(__name__)

PACKAGES_DIR = Path(__file__).resolve().parent.parent / "packages"

REFLECTOR_ARGS = ["--sort", "rate", "--protocol", "https", "--latest", "20", "--save", "/etc/pacman.d/mirrorlist"]


def read_package_list(path: str | Path) -> List[str]:
    """One package per line; '#' comments (inline too) and blank lines dropped."""

    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"Package list not found: {p}")
    out: List[str] = []
    for line in p.read_text(encoding="utf-8").splitlines():
        name = line.split("#", 1)[0].strip()
        if name:
            out.append(name)
    return out


def read_package_lists(paths: Iterable[str | Path]) -> List[str]:
    packages: List[str] = []
    for path in paths:
        items = read_package_list(path)
        logger.debug("Loaded %d packages from %s", len(items), path)
        packages.extend(items)
    return packages


def package_list_path(name: str, packages_dir: str | Path = PACKAGES_DIR) -> Path:
    return Path(packages_dir) / name


def setup_mirrors(country: Optional[str] = None) -> None:
    """Rank mirrors with reflector (country-filtered when known) and resync."""

    if have_cmd("reflector"):
        argv = ["reflector", *REFLECTOR_ARGS]
        if country:
            argv += ["--country", country]
            logger.info("Filtering mirrors by country: %s", country)
        run_cmd(argv)
    else:
        logger.warning("reflector not available, using existing mirrorlist.")
    run_cmd(["pacman", "-Syy"])


def pacstrap(target_root: str, packages: List[str]) -> None:
    if not packages:
        raise ValueError("No base packages to install.")
    logger.info("Running pacstrap with %d packages", len(packages))
    run_cmd(["pacstrap", "-K", target_root, *packages])


def pacman_install(packages: List[str]) -> None:
    """Install into the running root (used inside the chroot)."""

    if not packages:
        logger.warning("No packages to install.")
        return
    logger.info("Installing %d packages", len(packages))
    run_cmd(["pacman", "-S", "--noconfirm", "--needed", *packages])


def write_fstab(target_root: str) -> Path:
    """Append `genfstab -U` output for everything mounted under target_root."""

    r = run_cmd(["genfstab", "-U", target_root])
    fstab = Path(target_root) / "etc/fstab"
    fstab.parent.mkdir(parents=True, exist_ok=True)
    with fstab.open("a", encoding="utf-8") as f:
        f.write(r.stdout)
    logger.info("fstab generated at %s", fstab)
    return fstab
