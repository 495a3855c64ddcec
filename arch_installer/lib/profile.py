from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from ..config import ENV_VARS, InstallConfig
from ..errors import ConfigurationError
from .command import run_cmd
from .pkg import PACKAGES_DIR, pacman_install, read_package_lists
from .storage import ProvisionedDevices

logger = logging.getLogger(__name__)

PROFILES_DIR = Path(__file__).resolve().parent.parent / "profiles"
TEMP_SUDOERS = "/etc/sudoers.d/99-installer-temp"


@dataclass(frozen=True)
class Profile:
    """A workstation profile: package lists, module scripts, services.

    Profiles are declarative; the module scripts they list are opaque.
    """

    name: str
    base_dir: Path
    description: str = ""
    packages: List[str] = field(default_factory=list)
    modules: List[str] = field(default_factory=list)
    services: List[str] = field(default_factory=list)
    groups: List[str] = field(default_factory=list)


def _str_list(data: Dict[str, Any], key: str, path: Path) -> List[str]:
    value = data.get(key) or []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigurationError(f"{path}: '{key}' must be a list of strings")
    return list(value)


def load_profile(name: str, profiles_dir: str | Path = PROFILES_DIR) -> Profile:
    import yaml

    base = Path(profiles_dir)
    p = base / f"{name}.yaml"
    if not p.is_file():
        raise ConfigurationError(f"Unknown profile {name!r} (no {p})")
    data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Profile must be a mapping/dict: {p}")

    return Profile(
        name=name,
        base_dir=base,
        description=str(data.get("description") or ""),
        packages=_str_list(data, "packages", p),
        modules=_str_list(data, "modules", p),
        services=_str_list(data, "services", p),
        groups=_str_list(data, "groups", p),
    )


def module_environment(config: InstallConfig, devices: Optional[ProvisionedDevices] = None) -> Dict[str, str]:
    """The configuration as environment variables for module scripts.

    Credentials are not exported.
    """

    values = config.to_dict()
    env: Dict[str, str] = {}
    for var, name in ENV_VARS.items():
        value = values[name]
        if isinstance(value, bool):
            env[var] = "1" if value else "0"
        else:
            env[var] = str(value)
    # Scripts know the hostname under its usual name.
    env["HOSTNAME"] = config.hostname
    if devices is not None:
        env.update(
            {
                "PART_EFI": devices.efi,
                "PART_SWAP": devices.swap,
                "PART_ROOT": devices.root,
                "PART_HOME": devices.home or "",
                "SWAP_UUID": devices.swap_uuid,
            }
        )
    return env


class ProfileRunner:
    def __init__(
        self,
        config: InstallConfig,
        devices: Optional[ProvisionedDevices] = None,
        *,
        packages_dir: str | Path = PACKAGES_DIR,
        root: str = "/",
    ) -> None:
        self.config = config
        self.devices = devices
        self.packages_dir = Path(packages_dir)
        self.root = Path(root)

    @contextmanager
    def temporary_sudo(self) -> Iterator[None]:
        """Passwordless sudo for the user while modules build as that user (AUR)."""

        p = self.root / TEMP_SUDOERS.lstrip("/")
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(f"{self.config.username} ALL=(ALL) NOPASSWD: ALL\n", encoding="utf-8")
        os.chmod(p, 0o440)
        try:
            yield
        finally:
            p.unlink(missing_ok=True)

    def run(self, profile: Profile) -> None:
        logger.info("Applying profile %s (%s)", profile.name, profile.description or "no description")
        self.install_packages(profile)
        with self.temporary_sudo():
            self.run_modules(profile)
        self.enable_services(profile)
        self.add_user_groups(profile)
        logger.info("Profile %s complete.", profile.name)

    def install_packages(self, profile: Profile) -> None:
        paths = [self.packages_dir / name for name in profile.packages]
        try:
            packages = read_package_lists(paths)
        except FileNotFoundError as e:
            raise ConfigurationError(str(e)) from e
        pacman_install(packages)

    def run_modules(self, profile: Profile) -> None:
        env = module_environment(self.config, self.devices)
        for rel in profile.modules:
            script = profile.base_dir / rel
            if not script.is_file():
                raise ConfigurationError(f"Profile module not found: {script}")
            logger.info("Running profile module %s", rel)
            r = run_cmd(["bash", str(script)], check=False, env=env)
            if not r.ok:
                raise ConfigurationError(f"Profile module {rel} failed (rc={r.returncode}): {r.stderr.strip()}")

    def enable_services(self, profile: Profile) -> None:
        if profile.services:
            run_cmd(["systemctl", "enable", *profile.services])

    def add_user_groups(self, profile: Profile) -> None:
        if profile.groups and self.config.username:
            run_cmd(["usermod", "-aG", ",".join(profile.groups), self.config.username])
