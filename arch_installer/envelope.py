from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from .config import InstallConfig
from .errors import ConfigurationError
from .lib.storage import ProvisionedDevices
from .pipeline import PhaseState

logger = logging.getLogger(__name__)

ENVELOPE_VERSION = 1


@dataclass(frozen=True)
class BoundaryEnvelope:
    """Everything the inner process needs, handed over as one file.

    Built once by the outer process after provisioning; read once by the
    inner process as its only source of configuration.
    """

    config: InstallConfig
    devices: ProvisionedDevices
    resume_from: PhaseState = PhaseState.CHROOT_CONFIG
    installer_dir: str = "/root/arch-install"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": ENVELOPE_VERSION,
            "config": self.config.to_dict(),
            "devices": self.devices.to_dict(),
            "resume_from": self.resume_from.name,
            "installer_dir": self.installer_dir,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BoundaryEnvelope":
        version = data.get("version")
        if version != ENVELOPE_VERSION:
            raise ConfigurationError(f"Unsupported envelope version {version!r} (expected {ENVELOPE_VERSION})")
        try:
            return cls(
                config=InstallConfig.from_dict(data["config"]),
                devices=ProvisionedDevices.from_dict(data["devices"]),
                resume_from=PhaseState[data.get("resume_from", PhaseState.CHROOT_CONFIG.name)],
                installer_dir=str(data.get("installer_dir") or "/root/arch-install"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(f"Malformed envelope: {e}") from e


def save_envelope(path: str, envelope: BoundaryEnvelope) -> None:
    """Write the envelope as JSON, readable by root only (it holds passwords)."""

    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(p, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(json.dumps(envelope.to_dict(), indent=2, sort_keys=True) + "\n")
    os.chmod(p, 0o600)
    logger.info("Wrote boundary envelope %s", p)


def load_envelope(path: str) -> BoundaryEnvelope:
    p = Path(path)
    if not p.exists():
        raise ConfigurationError(f"Envelope not found: {path}")
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except ValueError as e:
        raise ConfigurationError(f"Envelope {path} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Envelope must be an object/dict, got {type(data).__name__}")
    return BoundaryEnvelope.from_dict(data)
