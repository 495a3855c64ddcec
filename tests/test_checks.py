import io

import pytest
from rich.console import Console

from arch_installer.config import InstallConfig
from arch_installer.errors import PreflightError
from arch_installer.lib import checks
from arch_installer.lib.hwdetect import DiskInfo
from arch_installer.lib.retry import RetryResult
from arch_installer.prompts import Prompter


class FakeWifi:
    def __init__(self, hardware=True, ifaces=()):
        self.hardware = hardware
        self.ifaces = list(ifaces)
        self.log = []

    def unblock(self):
        self.log.append("unblock")

    def wireless_devices(self):
        return ["dev"] if self.hardware else []

    def interfaces(self):
        return list(self.ifaces)

    def recover_interface(self):
        self.log.append("recover")
        self.ifaces = ["wlan0"]
        return True

    def scan(self, iface):
        self.log.append(("scan", iface))
        return ""

    def connect(self, iface, ssid, passphrase=""):
        self.log.append(("connect", iface, ssid, passphrase))
        return True

    def diagnostics(self):
        return "PCI network devices:\n  (none)"


@pytest.fixture
def console():
    return Console(file=io.StringIO(), force_terminal=False)


@pytest.fixture
def healthy(monkeypatch, fake_run):
    monkeypatch.setattr(checks, "run_cmd", fake_run)
    monkeypatch.setattr(checks, "is_online", lambda: True)
    monkeypatch.setattr(checks, "detect_firmware", lambda efivars: "uefi")
    monkeypatch.setattr(checks, "list_disks", lambda: [DiskInfo(path="/dev/sda", size="500G", model="disk")])
    return fake_run


def _probe(console, *, unattended=True, wifi=None, euid=0, keymap="us"):
    return checks.EnvironmentProbe(
        InstallConfig(keymap=keymap),
        Prompter(unattended=unattended, console=console),
        wifi=wifi or FakeWifi(),
        geteuid=lambda: euid,
        sleep=lambda s: None,
    )


def test_all_checks_pass_in_order(healthy, console):
    results = _probe(console, keymap="de").run_preflight()
    assert [r.name for r in results] == ["root", "uefi", "network", "disks", "clock", "keymap", "keyring"]
    assert ["loadkeys", "de"] in healthy.calls
    assert healthy.calls[-1] == ["pacman", "-Sy", "--noconfirm", "archlinux-keyring"]


def test_first_fatal_check_stops_the_run(healthy, console):
    probe = _probe(console, euid=1000)
    results = probe.check()
    assert [r.name for r in results] == ["root"]
    with pytest.raises(PreflightError, match="root"):
        probe.run_preflight()
    assert healthy.calls == []


def test_bios_boot_is_fatal(healthy, monkeypatch, console):
    monkeypatch.setattr(checks, "detect_firmware", lambda efivars: "bios")
    with pytest.raises(PreflightError, match="UEFI"):
        _probe(console).run_preflight()


def test_unattended_offline_fails_without_recovery(healthy, monkeypatch, console):
    monkeypatch.setattr(checks, "is_online", lambda: False)
    wifi = FakeWifi()
    with pytest.raises(PreflightError, match="network"):
        _probe(console, wifi=wifi).run_preflight()
    assert wifi.log == []


def test_attended_recovery_connects_then_polls(healthy, monkeypatch, console):
    monkeypatch.setattr(checks, "is_online", lambda: False)
    polls = iter([RetryResult(ok=False), RetryResult(ok=True)])
    monkeypatch.setattr(checks, "wait_online", lambda **kw: next(polls))
    answers = iter(["home", "secretpass"])
    monkeypatch.setattr(checks.Prompter, "ask", lambda self, text, **kw: next(answers))
    monkeypatch.setattr(checks.Prompter, "ask_secret", lambda self, text: next(answers))

    wifi = FakeWifi(hardware=True, ifaces=())
    result = _probe(console, unattended=False, wifi=wifi).check_network()

    assert result.ok
    assert wifi.log == ["unblock", "recover", ("scan", "wlan0"), ("connect", "wlan0", "home", "secretpass")]


def test_attended_recovery_gives_up_with_diagnostics(healthy, monkeypatch, console):
    monkeypatch.setattr(checks, "is_online", lambda: False)
    monkeypatch.setattr(checks, "wait_online", lambda **kw: RetryResult(ok=False))
    monkeypatch.setattr(checks.Prompter, "confirm", lambda self, text, **kw: False)

    result = _probe(console, unattended=False, wifi=FakeWifi(hardware=False)).check_network()
    assert not result.ok
    assert "PCI network devices" in result.detail
