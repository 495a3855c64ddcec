"""Configuration of the installed system, run from inside the chroot.

All file edits are relative to `root` (``/`` inside the chroot) so the
same code can be pointed at a scratch tree.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Callable, List, Optional

from ..config import InstallConfig
from ..errors import ConfigurationError
from .block import get_uuid
from .command import run_cmd
from .storage import ProvisionedDevices

logger = logging.getLogger(__name__)

_HOOKS_RE = re.compile(r"^(HOOKS=\(.*\bfilesystems\b)(?!\s+resume)", re.MULTILINE)
_MULTILIB_RE = re.compile(r"^#\[multilib\]\n#Include = (.*)$", re.MULTILINE)

LOADER_CONF = """default arch.conf
timeout 3
console-mode max
editor  no
"""

# (file name, title, kernel, initramfs suffix, quiet)
BOOT_ENTRIES = (
    ("arch.conf", "Arch Linux", "linux", "", True),
    ("arch-fallback.conf", "Arch Linux (Fallback)", "linux", "-fallback", False),
    ("arch-lts.conf", "Arch Linux (LTS)", "linux-lts", "", True),
    ("arch-lts-fallback.conf", "Arch Linux (LTS Fallback)", "linux-lts", "-fallback", False),
)


def _edit(path: Path, fn: Callable[[str], str]) -> None:
    if not path.exists():
        raise ConfigurationError(f"Expected file is missing: {path}")
    text = path.read_text(encoding="utf-8")
    new = fn(text)
    if new != text:
        path.write_text(new, encoding="utf-8")


def _write(path: Path, contents: str, mode: Optional[int] = None) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(contents, encoding="utf-8")
    if mode is not None:
        os.chmod(path, mode)


def enable_pacman_options(text: str) -> str:
    text = re.sub(r"^#ParallelDownloads.*$", "ParallelDownloads = 5", text, flags=re.MULTILINE)
    text = re.sub(r"^#Color$", "Color", text, flags=re.MULTILINE)
    # 32-bit libraries (Steam, Wine, some drivers) live in multilib.
    return _MULTILIB_RE.sub(r"[multilib]\nInclude = \1", text)


def add_resume_hook(text: str) -> str:
    return _HOOKS_RE.sub(r"\1 resume", text)


def enable_locale(text: str, locale: str) -> str:
    for name in dict.fromkeys([locale, "en_US.UTF-8"]):
        text = re.sub(rf"^#({re.escape(name)}\b)", r"\1", text, flags=re.MULTILINE)
    return text


def render_boot_entry(title: str, kernel: str, suffix: str, options: str, microcode: Optional[str]) -> str:
    lines = [f"title   {title}", f"linux   /vmlinuz-{kernel}"]
    if microcode:
        lines.append(f"initrd  /{microcode}")
    lines.append(f"initrd  /initramfs-{kernel}{suffix}.img")
    lines.append(f"options {options}")
    return "\n".join(lines) + "\n"


class SystemConfigurator:
    def __init__(self, config: InstallConfig, devices: ProvisionedDevices, *, root: str = "/") -> None:
        self.config = config
        self.devices = devices
        self.root = Path(root)

    def path(self, rel: str) -> Path:
        return self.root / rel.lstrip("/")

    def steps(self) -> List[Callable[[], None]]:
        return [
            self.configure_pacman,
            self.configure_timezone,
            self.configure_locale,
            self.configure_hostname,
            self.configure_dns,
            self.configure_initramfs,
            self.configure_bootloader,
            self.configure_users,
            self.configure_sudo,
        ]

    def run(self) -> None:
        for step in self.steps():
            step()

    def configure_pacman(self) -> None:
        _edit(self.path("/etc/pacman.conf"), enable_pacman_options)
        run_cmd(["pacman", "-Syy"])

    def configure_timezone(self) -> None:
        logger.info("Setting timezone to %s", self.config.timezone)
        link = self.path("/etc/localtime")
        if link.is_symlink() or link.exists():
            link.unlink()
        link.symlink_to(f"/usr/share/zoneinfo/{self.config.timezone}")
        run_cmd(["hwclock", "--systohc"])

    def configure_locale(self) -> None:
        logger.info("Configuring locale: %s", self.config.locale)
        _edit(self.path("/etc/locale.gen"), lambda t: enable_locale(t, self.config.locale))
        run_cmd(["locale-gen"])
        _write(self.path("/etc/locale.conf"), f"LANG={self.config.locale}\n")
        _write(self.path("/etc/vconsole.conf"), f"KEYMAP={self.config.keymap}\n")

    def configure_hostname(self) -> None:
        name = self.config.hostname
        if not name:
            raise ConfigurationError("hostname is empty")
        _write(self.path("/etc/hostname"), name + "\n")
        _write(
            self.path("/etc/hosts"),
            "127.0.0.1   localhost\n"
            "::1         localhost\n"
            f"127.0.1.1   {name}.localdomain {name}\n",
        )

    def configure_dns(self) -> None:
        # The stub resolv.conf link is made from outside: arch-chroot binds
        # the live system's resolv.conf over it for the whole session.
        run_cmd(["systemctl", "enable", "systemd-resolved"])

    def configure_initramfs(self) -> None:
        if self.devices.swap_uuid:
            logger.info("Adding resume hook for hibernation support")
            _edit(self.path("/etc/mkinitcpio.conf"), add_resume_hook)
        run_cmd(["mkinitcpio", "-P"])

    def _microcode(self) -> Optional[str]:
        # intel wins if both images are present
        found = None
        for img in ("amd-ucode.img", "intel-ucode.img"):
            if self.path(f"/boot/{img}").exists():
                found = img
        return found

    def kernel_options(self, root_uuid: str) -> str:
        opts = f"root=UUID={root_uuid} rw"
        if self.devices.swap_uuid:
            opts += f" resume=UUID={self.devices.swap_uuid}"
        return opts

    def configure_bootloader(self) -> None:
        if self.config.bootloader != "systemd-boot":
            raise ConfigurationError(f"Unsupported bootloader: {self.config.bootloader}")
        run_cmd(["bootctl", "install"])
        _write(self.path("/boot/loader/loader.conf"), LOADER_CONF)

        base_opts = self.kernel_options(get_uuid(self.devices.root))
        microcode = self._microcode()
        for fname, title, kernel, suffix, quiet in BOOT_ENTRIES:
            opts = f"{base_opts} quiet" if quiet else base_opts
            _write(
                self.path(f"/boot/loader/entries/{fname}"),
                render_boot_entry(title, kernel, suffix, opts, microcode),
            )
        logger.info("systemd-boot installed with %d entries", len(BOOT_ENTRIES))

    def configure_users(self) -> None:
        cfg = self.config
        if not cfg.username:
            raise ConfigurationError("username is empty")
        run_cmd(["chpasswd"], input_text=f"root:{cfg.root_password}\n")
        logger.info("Root password set.")

        run_cmd(["useradd", "-m", "-G", "wheel", "-s", "/usr/bin/zsh", cfg.username])
        run_cmd(["chpasswd"], input_text=f"{cfg.username}:{cfg.user_password}\n")
        # zsh is the login shell; drop the bash skeleton.
        for name in (".bash_logout", ".bash_profile", ".bashrc"):
            p = self.path(f"/home/{cfg.username}/{name}")
            if p.exists():
                p.unlink()
        logger.info("User %s created.", cfg.username)

    def configure_sudo(self) -> None:
        _edit(
            self.path("/etc/sudoers"),
            lambda t: re.sub(r"^# (%wheel ALL=\(ALL:ALL\) ALL)$", r"\1", t, flags=re.MULTILINE),
        )
        _write(self.path("/etc/sudoers.d/00-editor"), f"Defaults editor=/usr/bin/{self.config.editor}\n", mode=0o440)
