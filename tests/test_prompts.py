import io

import pytest
from rich.console import Console

from arch_installer import prompts
from arch_installer.errors import ConfigurationError, PreflightError


def _no_terminal(*args, **kwargs):
    raise AssertionError("prompt read from the terminal")


@pytest.fixture
def quiet_console():
    return Console(file=io.StringIO(), force_terminal=False)


@pytest.fixture
def no_tty(monkeypatch):
    monkeypatch.setattr(prompts.Prompt, "ask", _no_terminal)
    monkeypatch.setattr(prompts.Confirm, "ask", _no_terminal)


def test_unattended_returns_defaults_without_reading(no_tty, quiet_console):
    p = prompts.Prompter(unattended=True, console=quiet_console)
    assert p.ask("Timezone", default="Europe/Berlin") == "Europe/Berlin"
    assert p.ask_password("Root password", preset="pw") == "pw"
    assert p.ask_secret("Passphrase") == ""
    assert p.confirm("Proceed?", default=False) is True
    assert p.confirm("Retry?", unattended_answer=False) is False
    assert p.select("Disk", ["/dev/sda", "/dev/sdb"], default="/dev/sdb") == "/dev/sdb"


def test_unattended_after_lock_still_returns_defaults(no_tty, quiet_console):
    p = prompts.Prompter(unattended=True, console=quiet_console)
    p.lock()
    assert p.ask("Swap size", default="8G") == "8G"
    assert p.confirm("Proceed?") is True


def test_unattended_without_value_fails_fast(no_tty, quiet_console):
    p = prompts.Prompter(unattended=True, console=quiet_console)
    with pytest.raises(PreflightError):
        p.ask("Username")
    with pytest.raises(PreflightError):
        p.ask_password("Root password")
    with pytest.raises(PreflightError):
        p.select("Disk", ["/dev/sda", "/dev/sdb"])
    with pytest.raises(PreflightError):
        p.ask("Timezone", default="Fake/Zone", validate=lambda v: False)


def test_locked_attended_prompt_is_an_error(no_tty, quiet_console):
    p = prompts.Prompter(console=quiet_console)
    p.lock()
    assert p.locked
    with pytest.raises(ConfigurationError):
        p.ask("Hostname")
    with pytest.raises(ConfigurationError):
        p.confirm("Proceed?")


def test_ask_reprompts_until_valid(monkeypatch, quiet_console):
    answers = iter(["", "Bad Name", "alice"])
    monkeypatch.setattr(prompts.Prompt, "ask", lambda *a, **k: next(answers))
    p = prompts.Prompter(console=quiet_console)
    assert p.ask("Username", validate=lambda v: v.islower() and " " not in v) == "alice"


def test_password_needs_matching_confirmation(monkeypatch, quiet_console):
    answers = iter(["one", "two", "", "", "pw", "pw"])
    monkeypatch.setattr(prompts.Prompt, "ask", lambda *a, **k: next(answers))
    p = prompts.Prompter(console=quiet_console)
    assert p.ask_password("Root password") == "pw"


def test_select_maps_number_to_option(monkeypatch, quiet_console):
    seen = {}

    def fake_ask(text, **kwargs):
        seen.update(kwargs)
        return "2"

    monkeypatch.setattr(prompts.Prompt, "ask", fake_ask)
    p = prompts.Prompter(console=quiet_console)
    assert p.select("Disk", ["/dev/sda", "/dev/nvme0n1"], details=["Empty", "Linux detected"]) == "/dev/nvme0n1"
    assert seen["choices"] == ["1", "2"]


def test_unattended_missing_value_after_lock_is_a_configuration_error(no_tty, quiet_console):
    p = prompts.Prompter(unattended=True, console=quiet_console)
    p.lock()
    with pytest.raises(ConfigurationError):
        p.ask("Username")
    with pytest.raises(ConfigurationError):
        p.ask_password("Root password")
    with pytest.raises(ConfigurationError):
        p.select("Disk", ["/dev/sda", "/dev/sdb"])
