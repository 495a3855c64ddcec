"""Wireless recovery for the live environment.

Escalation order, each step only when the cheaper one did not help:
rfkill unblock -> driver module reload -> PCI remove/rescan + reload.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from .command import run_cmd
from .env import PATHS
from .retry import retry

logger = logging.getLogger(__name__)

# Substring of the lspci vendor/device text -> kernel module.
VENDOR_DRIVERS = (
    ("intel", "iwlwifi"),
    ("realtek", "rtw88_pci"),
    ("mediatek", "mt7921e"),
    ("broadcom", "brcmfmac"),
    ("qualcomm", "ath10k_pci"),
    ("atheros", "ath10k_pci"),
)

_NET_CTRL_RE = re.compile(r"^(?P<slot>\S+)\s+Network controller \[0280\]:\s*(?P<desc>.*)$")


@dataclass(frozen=True)
class WirelessDevice:
    slot: str
    description: str
    driver: Optional[str]


def driver_for_vendor(description: str) -> Optional[str]:
    text = description.lower()
    for vendor, module in VENDOR_DRIVERS:
        if vendor in text:
            return module
    return None


class WifiRecovery:
    def __init__(
        self,
        *,
        sys_bus_pci: str = PATHS.sys_bus_pci,
        sys_class_net: str = PATHS.sys_class_net,
        iface_retries: int = 10,
        iface_interval: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.sys_bus_pci = Path(sys_bus_pci)
        self.sys_class_net = Path(sys_class_net)
        self.iface_retries = iface_retries
        self.iface_interval = iface_interval
        self._sleep = sleep

    # ---------- detection ----------

    def pci_lines(self) -> List[str]:
        r = run_cmd(["lspci", "-Dnn"], check=False)
        return [ln for ln in (r.stdout or "").splitlines() if "Network controller" in ln or "Ethernet controller" in ln]

    def wireless_devices(self) -> List[WirelessDevice]:
        devices: List[WirelessDevice] = []
        for line in self.pci_lines():
            m = _NET_CTRL_RE.match(line.strip())
            if not m:
                continue
            slot = m.group("slot")
            desc = m.group("desc")
            devices.append(WirelessDevice(slot=slot, description=desc, driver=self._bound_driver(slot) or driver_for_vendor(desc)))
        return devices

    def _bound_driver(self, slot: str) -> Optional[str]:
        # driver: /sys/bus/pci/devices/<slot>/driver -> .../drivers/iwlwifi
        link = self.sys_bus_pci / "devices" / slot / "driver"
        try:
            if link.exists():
                return link.resolve().name
        except OSError:
            return None
        return None

    def interfaces(self) -> List[str]:
        if not self.sys_class_net.is_dir():
            return []
        out = []
        for p in sorted(self.sys_class_net.iterdir()):
            if (p / "wireless").exists() or (p / "phy80211").exists():
                out.append(p.name)
        return out

    # ---------- recovery steps ----------

    def unblock(self) -> None:
        run_cmd(["rfkill", "unblock", "wifi"], check=False)

    def _wait_interface(self, what: str) -> bool:
        return retry(self.iface_retries, self.iface_interval, self.interfaces, what=what, sleep=self._sleep).ok

    def reload_driver(self, driver: str) -> bool:
        logger.info("Reloading wireless driver %s", driver)
        run_cmd(["modprobe", "-r", driver], check=False)
        run_cmd(["modprobe", driver], check=False)
        return self._wait_interface(f"wireless interface after reloading {driver}")

    def bus_reset(self, device: WirelessDevice) -> bool:
        logger.warning("Resetting PCI device %s (%s)", device.slot, device.description)
        remove = self.sys_bus_pci / "devices" / device.slot / "remove"
        rescan = self.sys_bus_pci / "rescan"
        try:
            remove.write_text("1\n", encoding="utf-8")
            self._sleep(1.0)
            rescan.write_text("1\n", encoding="utf-8")
        except OSError as e:
            logger.warning("PCI reset of %s failed: %s", device.slot, e)
            return False
        if device.driver:
            run_cmd(["modprobe", device.driver], check=False)
        return self._wait_interface(f"wireless interface after PCI reset of {device.slot}")

    def recover_interface(self) -> bool:
        """Bring up a wireless interface when hardware exists but none is visible."""

        if self.interfaces():
            return True
        devices = self.wireless_devices()
        if not devices:
            logger.info("No wireless hardware found on the PCI bus")
            return False

        for dev in devices:
            if dev.driver and self.reload_driver(dev.driver):
                return True
        for dev in devices:
            if self.bus_reset(dev):
                return True
        return False

    # ---------- connection ----------

    def scan(self, iface: str) -> str:
        run_cmd(["iwctl", "station", iface, "scan"], check=False)
        self._sleep(2.0)
        r = run_cmd(["iwctl", "station", iface, "get-networks"], check=False)
        return r.stdout or ""

    def connect(self, iface: str, ssid: str, passphrase: str = "") -> bool:
        argv = ["iwctl"]
        if passphrase:
            argv += ["--passphrase", passphrase]
        argv += ["station", iface, "connect", ssid]
        r = run_cmd(argv, check=False, redact=(passphrase,) if passphrase else ())
        if r.returncode != 0:
            logger.warning("Connecting %s to %r failed (rc=%s)", iface, ssid, r.returncode)
        return r.returncode == 0

    def diagnostics(self) -> str:
        lines = ["PCI network devices:"]
        lines += [f"  {ln}" for ln in self.pci_lines()] or ["  (none)"]
        r = run_cmd(["rfkill", "list"], check=False)
        lines.append("rfkill:")
        lines += [f"  {ln}" for ln in (r.stdout or "").splitlines()] or ["  (unavailable)"]
        return "\n".join(lines)
