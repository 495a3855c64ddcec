from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from rich.console import Console
from rich.prompt import Confirm, Prompt
from rich.table import Table

from .errors import ConfigurationError, InstallerError, PreflightError

logger = logging.getLogger(__name__)


class Prompter:
    """Every interactive question goes through here.

    In unattended mode no method ever reads from the terminal: each one
    returns the pre-supplied or default value it was given. After lock()
    (the confirmation checkpoint) an attended prompt is an error instead of
    a blocking read.
    """

    def __init__(self, *, unattended: bool = False, console: Optional[Console] = None) -> None:
        self.unattended = unattended
        self.console = console or Console(stderr=True)
        self._locked = False

    @property
    def locked(self) -> bool:
        return self._locked

    def lock(self) -> None:
        self._locked = True

    def _guard(self, text: str) -> None:
        if self._locked:
            raise ConfigurationError(f"Interactive prompt after confirmation is not allowed: {text}")

    def _missing(self, message: str) -> InstallerError:
        # Past the checkpoint a missing answer is a configuration fault.
        if self._locked:
            return ConfigurationError(message)
        return PreflightError(message)

    def ask(
        self,
        text: str,
        default: str = "",
        *,
        validate: Optional[Callable[[str], bool]] = None,
        invalid_msg: str = "Invalid value.",
    ) -> str:
        """Free-text question, re-asked until non-empty and valid."""

        if self.unattended:
            if not default or (validate and not validate(default)):
                raise self._missing(f"Unattended mode has no value for: {text}")
            logger.info("Auto-answered: %s -> %s", text, default)
            return default

        self._guard(text)
        kwargs = {"default": default} if default else {}
        while True:
            value = Prompt.ask(text, console=self.console, **kwargs) or ""
            value = value.strip()
            if not value:
                self.console.print("[yellow]Value cannot be empty.[/yellow]")
                continue
            if validate and not validate(value):
                self.console.print(f"[yellow]{invalid_msg}[/yellow]")
                continue
            return value

    def ask_password(self, text: str, preset: str = "") -> str:
        """Secret entry with confirmation. Never logged."""

        if self.unattended:
            if not preset:
                raise self._missing(f"Unattended mode requires PASSWORD for: {text}")
            logger.info("Using pre-set password for: %s", text)
            return preset

        self._guard(text)
        while True:
            first = Prompt.ask(text, password=True, console=self.console) or ""
            second = Prompt.ask("Confirm", password=True, console=self.console) or ""
            if first != second:
                self.console.print("[yellow]Passwords do not match. Try again.[/yellow]")
                continue
            if not first:
                self.console.print("[yellow]Password cannot be empty. Try again.[/yellow]")
                continue
            return first

    def ask_secret(self, text: str, preset: str = "") -> str:
        """Single hidden entry; empty is allowed (open Wi-Fi networks)."""

        if self.unattended:
            return preset

        self._guard(text)
        return Prompt.ask(text, password=True, default="", show_default=False, console=self.console) or ""

    def confirm(self, text: str, *, default: bool = False, unattended_answer: bool = True) -> bool:
        if self.unattended:
            logger.info("Auto-confirmed: %s -> %s", text, "yes" if unattended_answer else "no")
            return unattended_answer

        self._guard(text)
        return bool(Confirm.ask(text, default=default, console=self.console))

    def select(self, text: str, options: Sequence[str], *, details: Optional[Sequence[str]] = None, default: str = "") -> str:
        if not options:
            raise PreflightError(f"Nothing to choose from: {text}")

        if self.unattended:
            if default in options:
                logger.info("Auto-selected: %s -> %s", text, default)
                return default
            raise self._missing(f"Unattended mode has no selection for: {text}")

        self._guard(text)
        self.console.print(f"\n[cyan]::[/cyan] {text}")
        for i, opt in enumerate(options, start=1):
            self.console.print(f"   [bold]{i})[/bold] {opt}")
            if details and i - 1 < len(details) and details[i - 1]:
                self.console.print(f"      [dim]{details[i - 1]}[/dim]")
        choices = [str(i) for i in range(1, len(options) + 1)]
        picked = Prompt.ask(f"Enter number [1-{len(options)}]", choices=choices, show_choices=False, console=self.console)
        return options[int(picked) - 1]

    def summary(self, title: str, items: Sequence[tuple[str, str]]) -> None:
        table = Table(title=title, show_header=False, box=None, padding=(0, 2))
        table.add_column(style="bold")
        table.add_column()
        for key, value in items:
            table.add_row(key, value)
        self.console.print()
        self.console.print(table)
        self.console.print()
