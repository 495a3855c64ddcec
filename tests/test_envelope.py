import json
import os
import stat

import pytest

from arch_installer.config import InstallConfig
from arch_installer.envelope import ENVELOPE_VERSION, BoundaryEnvelope, load_envelope, save_envelope
from arch_installer.errors import ConfigurationError
from arch_installer.lib.storage import ProvisionedDevices
from arch_installer.pipeline import PhaseState


def _envelope():
    cfg = InstallConfig(
        target_disk="/dev/nvme0n1",
        hostname="workbox",
        username="alice",
        timezone="Europe/Berlin",
        swap_size="8G",
        root_password="rootpw",
        user_password="userpw",
        auto=True,
    )
    devices = ProvisionedDevices(
        efi="/dev/nvme0n1p1",
        swap="/dev/nvme0n1p2",
        root="/dev/nvme0n1p3",
        home="/dev/nvme0n1p4",
        swap_uuid="1111-2222",
    )
    return BoundaryEnvelope(config=cfg, devices=devices)


def test_save_and_load_preserve_every_field(tmp_path):
    path = tmp_path / "arch-install" / "envelope.json"
    env = _envelope()
    save_envelope(str(path), env)

    loaded = load_envelope(str(path))
    assert loaded == env
    assert loaded.resume_from is PhaseState.CHROOT_CONFIG
    assert loaded.config.root_password == "rootpw"


def test_envelope_is_private(tmp_path):
    path = tmp_path / "envelope.json"
    save_envelope(str(path), _envelope())
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o600


def test_version_mismatch_is_rejected(tmp_path):
    path = tmp_path / "envelope.json"
    data = _envelope().to_dict()
    data["version"] = ENVELOPE_VERSION + 1
    path.write_text(json.dumps(data), encoding="utf-8")
    with pytest.raises(ConfigurationError, match="version"):
        load_envelope(str(path))


def test_missing_or_broken_envelope(tmp_path):
    with pytest.raises(ConfigurationError):
        load_envelope(str(tmp_path / "nope.json"))

    path = tmp_path / "envelope.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_envelope(str(path))

    data = _envelope().to_dict()
    del data["devices"]
    path.write_text(json.dumps(data), encoding="utf-8")
    with pytest.raises(ConfigurationError, match="Malformed"):
        load_envelope(str(path))
