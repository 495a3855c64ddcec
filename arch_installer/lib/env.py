from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Paths:
    # Not /tmp: arch-chroot mounts a fresh tmpfs there.
    chroot_installer_dir: str = "/root/arch-install"
    zoneinfo: str = "/usr/share/zoneinfo"
    efivars: str = "/sys/firmware/efi/efivars"
    meminfo: str = "/proc/meminfo"
    sys_class_net: str = "/sys/class/net"
    sys_bus_pci: str = "/sys/bus/pci"


PATHS = Paths()
