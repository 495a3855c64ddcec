from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from ..config import InstallConfig
from ..errors import PreflightError
from ..prompts import Prompter
from .command import run_cmd
from .env import PATHS
from .firmware import detect_firmware
from .hwdetect import list_disks
from .net import is_online, wait_online
from .wifi import WifiRecovery

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckResult:
    name: str
    ok: bool
    detail: str = ""

    @classmethod
    def passed(cls, name: str, detail: str = "") -> "CheckResult":
        return cls(name=name, ok=True, detail=detail)

    @classmethod
    def fatal(cls, name: str, detail: str) -> "CheckResult":
        return cls(name=name, ok=False, detail=detail)


class EnvironmentProbe:
    """Preflight checks of the live environment.

    Order matters: each check assumes the earlier ones passed (the keyring
    refresh needs network and a synced clock, etc.), so the first fatal
    result ends the run.
    """

    def __init__(
        self,
        config: InstallConfig,
        prompter: Prompter,
        *,
        wifi: Optional[WifiRecovery] = None,
        online_retries: int = 10,
        online_interval: float = 3.0,
        efivars: str = PATHS.efivars,
        geteuid: Callable[[], int] = os.geteuid,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.prompter = prompter
        self.wifi = wifi or WifiRecovery(sleep=sleep)
        self.online_retries = online_retries
        self.online_interval = online_interval
        self.efivars = efivars
        self._geteuid = geteuid
        self._sleep = sleep

    def checks(self) -> List[Callable[[], CheckResult]]:
        return [
            self.check_root,
            self.check_uefi,
            self.check_network,
            self.check_disks,
            self.sync_clock,
            self.apply_keymap,
            self.refresh_keyring,
        ]

    def check(self) -> List[CheckResult]:
        results: List[CheckResult] = []
        for fn in self.checks():
            res = fn()
            results.append(res)
            if res.ok:
                logger.info("%s - OK%s", res.name, f" ({res.detail})" if res.detail else "")
            else:
                logger.error("%s - FAILED: %s", res.name, res.detail)
                break
        return results

    def run_preflight(self) -> List[CheckResult]:
        results = self.check()
        failed = [r for r in results if not r.ok]
        if failed:
            raise PreflightError(failed[0].detail)
        logger.info("All preflight checks passed.")
        return results

    # ---------- individual checks ----------

    def check_root(self) -> CheckResult:
        if self._geteuid() != 0:
            return CheckResult.fatal("root", "This installer must be run as root.")
        return CheckResult.passed("root")

    def check_uefi(self) -> CheckResult:
        if detect_firmware(self.efivars) != "uefi":
            return CheckResult.fatal(
                "uefi",
                "UEFI boot mode not detected. This installer requires UEFI. "
                "Disable CSM/Legacy in your firmware settings.",
            )
        return CheckResult.passed("uefi")

    def check_disks(self) -> CheckResult:
        disks = list_disks()
        if not disks:
            return CheckResult.fatal("disks", "No suitable block devices found.")
        return CheckResult.passed("disks", f"{len(disks)} block device(s)")

    def sync_clock(self) -> CheckResult:
        # Skewed clocks break TLS during package downloads.
        r = run_cmd(["timedatectl", "set-ntp", "true"], check=False)
        if not r.ok:
            return CheckResult.fatal("clock", f"Enabling NTP time sync failed: {r.stderr.strip()}")
        return CheckResult.passed("clock")

    def apply_keymap(self) -> CheckResult:
        if self.config.keymap == "us":
            return CheckResult.passed("keymap", "default")
        r = run_cmd(["loadkeys", self.config.keymap], check=False)
        if not r.ok:
            return CheckResult.fatal("keymap", f"Loading keymap {self.config.keymap} failed")
        return CheckResult.passed("keymap", self.config.keymap)

    def refresh_keyring(self) -> CheckResult:
        # Stale keys on older ISOs cause signature failures.
        r = run_cmd(["pacman", "-Sy", "--noconfirm", "archlinux-keyring"], check=False)
        if not r.ok:
            return CheckResult.fatal("keyring", f"Refreshing pacman keyring failed: {r.stderr.strip()}")
        return CheckResult.passed("keyring")

    # ---------- network ----------

    def check_network(self) -> CheckResult:
        if is_online():
            return CheckResult.passed("network")

        if self.prompter.unattended:
            return CheckResult.fatal(
                "network",
                "No network connectivity. Connect to the internet before running the installer.",
            )

        logger.warning("No network connectivity; attempting recovery")
        self.wifi.unblock()
        if self._poll_online():
            return CheckResult.passed("network", "after rfkill unblock")

        if self.wifi.wireless_devices() and not self.wifi.interfaces():
            self.wifi.recover_interface()

        while True:
            ifaces = self.wifi.interfaces()
            if ifaces:
                self._configure_wifi(ifaces)
            if self._poll_online():
                return CheckResult.passed("network", "after recovery")
            if not self.prompter.confirm("Still offline. Retry network setup?", default=True, unattended_answer=False):
                break

        return CheckResult.fatal(
            "network",
            "No network connectivity after recovery attempts.\n" + self.wifi.diagnostics(),
        )

    def _poll_online(self) -> bool:
        return wait_online(retries=self.online_retries, interval=self.online_interval, sleep=self._sleep).ok

    def _configure_wifi(self, ifaces: List[str]) -> None:
        iface = ifaces[0]
        if len(ifaces) > 1:
            iface = self.prompter.select("Select wireless device", ifaces)

        networks = self.wifi.scan(iface)
        if networks.strip():
            self.prompter.console.print(networks)
        ssid = self.prompter.ask("Network name (SSID)")
        passphrase = self.prompter.ask_secret("Passphrase (empty for open network)")
        self.wifi.connect(iface, ssid, passphrase)
