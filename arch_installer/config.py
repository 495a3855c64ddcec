from __future__ import annotations

import dataclasses
import logging
import math
import os
import re
import shlex
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .errors import PreflightError

logger = logging.getLogger(__name__)

GIB = 1024**3

SUPPORTED_FS = ("ext4", "btrfs")
SUPPORTED_BOOTLOADERS = ("systemd-boot",)
DEFAULT_ROOT_SIZE = "128G"

_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([KMGT]?)(?:i?B)?\s*$", re.IGNORECASE)
_UNITS = {"": 1, "K": 1024, "M": 1024**2, "G": GIB, "T": 1024**4}


@dataclass(frozen=True)
class InstallConfig:
    """Every tunable of one installation run.

    Constructed once by merge(); never mutated. Phases that resolve a value
    (swap size, disk, wipe decision) build a new instance with
    dataclasses.replace() before the confirmation checkpoint.
    """

    # Disk
    target_disk: str = ""
    fs_type: str = "ext4"
    efi_size: str = "1G"
    swap_size: str = ""
    root_size: str = ""
    wipe_home: str = ""

    # System
    hostname: str = ""
    username: str = ""
    timezone: str = "UTC"
    locale: str = "en_US.UTF-8"
    keymap: str = "us"

    # Boot / hardware / software
    bootloader: str = "systemd-boot"
    gpu_driver: str = "auto"
    editor: str = "nvim"
    aur_helper: str = "yay"
    dotfiles_repo: str = ""
    arch_install_repo: str = ""
    server_install_repo: str = ""
    profile: str = "workstation"

    # Mirrors
    mirror_country: str = ""

    # Credentials
    root_password: str = ""
    user_password: str = ""

    # Run mode
    auto: bool = False
    dry_run: bool = False
    debug: bool = False
    reboot: bool = False

    # Paths
    mount_point: str = "/mnt"
    log_file: str = "/var/log/arch-install.log"

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InstallConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown config fields: {', '.join(unknown)}")
        return cls(**dict(data))

    def summary_items(self) -> list[tuple[str, str]]:
        return [
            ("Hostname", self.hostname),
            ("Username", self.username),
            ("Timezone", self.timezone),
            ("Locale", self.locale),
            ("Keymap", self.keymap),
            ("Filesystem", self.fs_type),
            ("Swap", self.swap_size or "auto"),
            ("Root size", self.root_size or DEFAULT_ROOT_SIZE),
            ("Kernels", "linux + linux-lts"),
            ("Bootloader", self.bootloader),
            ("Disk", self.target_disk),
            ("Wipe /home", self.wipe_home or "yes"),
            ("Mirrors", self.mirror_country or "worldwide"),
        ]


# Environment variables recognised for each field. HOSTNAME is always set by
# the shell, so the hostname has its own name.
ENV_VARS: Dict[str, str] = {
    "TARGET_DISK": "target_disk",
    "FS_TYPE": "fs_type",
    "EFI_SIZE": "efi_size",
    "SWAP_SIZE": "swap_size",
    "ROOT_SIZE": "root_size",
    "WIPE_HOME": "wipe_home",
    "INSTALL_HOSTNAME": "hostname",
    "USERNAME": "username",
    "TIMEZONE": "timezone",
    "LOCALE": "locale",
    "KEYMAP": "keymap",
    "BOOTLOADER": "bootloader",
    "GPU_DRIVER": "gpu_driver",
    "EDITOR": "editor",
    "AUR_HELPER": "aur_helper",
    "DOTFILES_REPO": "dotfiles_repo",
    "ARCH_INSTALL_REPO": "arch_install_repo",
    "SERVER_INSTALL_REPO": "server_install_repo",
    "PROFILE": "profile",
    "MIRROR_COUNTRY": "mirror_country",
    "AUTO_MODE": "auto",
    "DRY_RUN": "dry_run",
    "DEBUG": "debug",
    "MOUNT_POINT": "mount_point",
    "LOG_FILE": "log_file",
}

PASSWORD_ENV = "PASSWORD"

_BOOL_FIELDS = {f.name for f in fields(InstallConfig) if f.type in ("bool", bool)}


def parse_size(value: str) -> int:
    """Parse '8G', '512M', '1.5T', '128GiB' into bytes."""

    m = _SIZE_RE.match(str(value))
    if not m:
        raise ValueError(f"Invalid size: {value!r}")
    number, unit = m.group(1), m.group(2).upper()
    return int(float(number) * _UNITS[unit])


def format_size(size_bytes: int) -> str:
    """Render a size for sgdisk; whole GiB become 'NG', the rest round up to MiB."""

    if size_bytes % GIB == 0:
        return f"{size_bytes // GIB}G"
    return f"{math.ceil(size_bytes / 1024**2)}M"


def _coerce(name: str, value: Any) -> Any:
    if isinstance(value, (dict, list, tuple, set)):
        raise PreflightError(f"Config key {name!r} must be a scalar value")
    if name in _BOOL_FIELDS:
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in {"1", "true", "yes", "on", "y"}
    if value is None:
        return ""
    return str(value)


def _field_for_key(key: str) -> Optional[str]:
    names = {f.name for f in fields(InstallConfig)}
    k = key.strip()
    if k.lower() in names:
        return k.lower()
    return ENV_VARS.get(k.upper())


def normalize_overrides(raw: Mapping[str, Any], *, source: str) -> Dict[str, Any]:
    """Map user-facing keys (field names or env names) to typed field values."""

    out: Dict[str, Any] = {}
    for key, value in raw.items():
        if key.upper() == PASSWORD_ENV:
            # A password in a config file serves both accounts.
            out["root_password"] = _coerce("root_password", value)
            out["user_password"] = _coerce("user_password", value)
            continue
        name = _field_for_key(str(key))
        if name is None:
            raise PreflightError(f"Unknown key {key!r} in {source}")
        out[name] = _coerce(name, value)
    return out


def defaults_from_env(environ: Mapping[str, str] | None = None) -> Dict[str, Any]:
    env = os.environ if environ is None else environ
    raw = {k: env[k] for k in ENV_VARS if env.get(k, "") != ""}
    values = normalize_overrides(raw, source="environment")
    auto = values.get("auto", False)
    if auto and env.get(PASSWORD_ENV):
        values["root_password"] = env[PASSWORD_ENV]
        values["user_password"] = env[PASSWORD_ENV]
    return values


def _parse_kv_lines(text: str) -> Dict[str, str]:
    data: Dict[str, str] = {}
    for lineno, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if stripped.startswith("export "):
            stripped = stripped[len("export "):].strip()
        if "=" not in stripped:
            raise PreflightError(f"Config line {lineno} is not KEY=VALUE: {line!r}")
        key, _, value = stripped.partition("=")
        try:
            parts = shlex.split(value, comments=True)
        except ValueError as e:
            raise PreflightError(f"Config line {lineno}: {e}") from e
        data[key.strip()] = " ".join(parts)
    return data


def load_config_file(path: str) -> Dict[str, Any]:
    """Read a flat override file (YAML mapping or KEY=VALUE lines)."""

    p = Path(path)
    if not p.exists():
        raise PreflightError(f"Config file not found: {path}")

    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in {".yaml", ".yml"}:
        import yaml

        raw = yaml.safe_load(text) or {}
        if not isinstance(raw, dict):
            raise PreflightError(f"{path} must contain a mapping")
    else:
        raw = _parse_kv_lines(text)

    logger.info("Loaded %d override(s) from %s", len(raw), path)
    return normalize_overrides(raw, source=path)


def merge(
    defaults: Mapping[str, Any],
    file_overrides: Mapping[str, Any],
    cli_overrides: Mapping[str, Any],
) -> InstallConfig:
    """Combine the three layers; a later layer replaces whole fields."""

    values: Dict[str, Any] = {}
    for layer in (defaults, file_overrides, cli_overrides):
        for key, value in layer.items():
            if value is None:
                continue
            values[key] = value
    return InstallConfig.from_dict(values)


def validate(cfg: InstallConfig) -> InstallConfig:
    if cfg.fs_type not in SUPPORTED_FS:
        raise PreflightError(f"Unsupported filesystem: {cfg.fs_type} (expected {' | '.join(SUPPORTED_FS)})")
    if cfg.bootloader not in SUPPORTED_BOOTLOADERS:
        raise PreflightError(f"Unsupported bootloader: {cfg.bootloader} (only systemd-boot is supported)")
    if cfg.wipe_home not in {"", "yes", "no"}:
        raise PreflightError(f"--wipe-home must be yes or no, got {cfg.wipe_home!r}")
    for name in ("efi_size", "swap_size", "root_size"):
        value = getattr(cfg, name)
        if value:
            try:
                parse_size(value)
            except ValueError as e:
                raise PreflightError(f"{name}: {e}") from e
    return cfg
