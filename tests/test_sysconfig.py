import os
import stat

import pytest

from arch_installer.config import InstallConfig
from arch_installer.errors import ConfigurationError
from arch_installer.lib import sysconfig
from arch_installer.lib.storage import ProvisionedDevices

PACMAN_CONF = """[options]
#Color
#ParallelDownloads = 5

#[multilib]
#Include = /etc/pacman.d/mirrorlist
"""

MKINITCPIO = "MODULES=()\nHOOKS=(base udev autodetect microcode modconf kms keyboard keymap consolefont block filesystems fsck)\n"

SUDOERS = "root ALL=(ALL:ALL) ALL\n# %wheel ALL=(ALL:ALL) ALL\n# %wheel ALL=(ALL:ALL) NOPASSWD: ALL\n"


@pytest.fixture
def root(tmp_path):
    etc = tmp_path / "etc"
    etc.mkdir()
    (etc / "pacman.conf").write_text(PACMAN_CONF, encoding="utf-8")
    (etc / "mkinitcpio.conf").write_text(MKINITCPIO, encoding="utf-8")
    (etc / "locale.gen").write_text("#de_DE.UTF-8 UTF-8\n#en_US.UTF-8 UTF-8\n", encoding="utf-8")
    (etc / "sudoers").write_text(SUDOERS, encoding="utf-8")
    (tmp_path / "boot").mkdir()
    (tmp_path / "boot" / "intel-ucode.img").write_bytes(b"")
    (tmp_path / "home" / "alice").mkdir(parents=True)
    (tmp_path / "home" / "alice" / ".bashrc").write_text("", encoding="utf-8")
    return tmp_path


@pytest.fixture
def configurator(root, monkeypatch, fake_run):
    monkeypatch.setattr(sysconfig, "run_cmd", fake_run)
    monkeypatch.setattr(sysconfig, "get_uuid", lambda dev: "root-uuid")
    cfg = InstallConfig(
        hostname="workbox",
        username="alice",
        timezone="Europe/Berlin",
        locale="de_DE.UTF-8",
        keymap="de",
        root_password="rootpw",
        user_password="userpw",
    )
    devices = ProvisionedDevices(efi="/dev/sda1", swap="/dev/sda2", root="/dev/sda3", home="/dev/sda4", swap_uuid="swap-uuid")
    return sysconfig.SystemConfigurator(cfg, devices, root=str(root))


def test_pacman_options():
    text = sysconfig.enable_pacman_options(PACMAN_CONF)
    assert "\nColor\n" in text
    assert "ParallelDownloads = 5" in text
    assert "[multilib]\nInclude = /etc/pacman.d/mirrorlist" in text


def test_resume_hook_after_filesystems_once():
    once = sysconfig.add_resume_hook(MKINITCPIO)
    assert "block filesystems resume fsck" in once
    assert sysconfig.add_resume_hook(once) == once


def test_full_run(configurator, root, fake_run):
    configurator.run()

    assert os.readlink(root / "etc" / "localtime") == "/usr/share/zoneinfo/Europe/Berlin"
    assert (root / "etc" / "locale.gen").read_text() == "de_DE.UTF-8 UTF-8\nen_US.UTF-8 UTF-8\n"
    assert (root / "etc" / "locale.conf").read_text() == "LANG=de_DE.UTF-8\n"
    assert (root / "etc" / "vconsole.conf").read_text() == "KEYMAP=de\n"
    assert (root / "etc" / "hostname").read_text() == "workbox\n"
    assert "workbox.localdomain workbox" in (root / "etc" / "hosts").read_text()
    assert "filesystems resume" in (root / "etc" / "mkinitcpio.conf").read_text()
    assert not (root / "home" / "alice" / ".bashrc").exists()

    sudoers = (root / "etc" / "sudoers").read_text()
    assert "\n%wheel ALL=(ALL:ALL) ALL\n" in sudoers
    assert "# %wheel ALL=(ALL:ALL) NOPASSWD: ALL" in sudoers
    assert stat.S_IMODE(os.stat(root / "etc" / "sudoers.d" / "00-editor").st_mode) == 0o440

    names = [c[0] for c in fake_run.calls]
    assert names.index("mkinitcpio") < names.index("bootctl")
    assert ["useradd", "-m", "-G", "wheel", "-s", "/usr/bin/zsh", "alice"] in fake_run.calls
    inputs = [kw.get("input_text") for c, kw in zip(fake_run.calls, fake_run.kwargs) if c == ["chpasswd"]]
    assert inputs == ["root:rootpw\n", "alice:userpw\n"]


def test_boot_entries(configurator, root):
    configurator.configure_bootloader()
    entries = root / "boot" / "loader" / "entries"
    assert sorted(p.name for p in entries.iterdir()) == [
        "arch-fallback.conf",
        "arch-lts-fallback.conf",
        "arch-lts.conf",
        "arch.conf",
    ]
    main = (entries / "arch.conf").read_text()
    assert "initrd  /intel-ucode.img\ninitrd  /initramfs-linux.img\n" in main
    assert "options root=UUID=root-uuid rw resume=UUID=swap-uuid quiet" in main
    fallback = (entries / "arch-lts-fallback.conf").read_text()
    assert "/initramfs-linux-lts-fallback.img" in fallback
    assert "quiet" not in fallback
    assert (root / "boot" / "loader" / "loader.conf").read_text().startswith("default arch.conf")


def test_no_swap_uuid_means_no_resume(configurator, root):
    configurator.devices = ProvisionedDevices(efi="/dev/sda1", swap="/dev/sda2", root="/dev/sda3", home=None)
    configurator.configure_initramfs()
    assert "resume" not in (root / "etc" / "mkinitcpio.conf").read_text()
    assert "resume=" not in configurator.kernel_options("u")


def test_missing_file_is_a_configuration_error(configurator, root):
    (root / "etc" / "pacman.conf").unlink()
    with pytest.raises(ConfigurationError, match="pacman.conf"):
        configurator.configure_pacman()
