from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from typing import Mapping, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandError(RuntimeError):
    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = "") -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        msg = f"Command failed ({returncode}): {fmt_argv(self.argv)}"
        if stderr.strip():
            msg += f"\n{stderr.strip()}"
        super().__init__(msg)


def fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def run_cmd(
    argv: Sequence[str],
    *,
    check: bool = True,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    input_text: str | None = None,
    capture: bool = True,
    timeout: float | None = None,
    redact: Sequence[str] = (),
) -> CmdResult:
    """Run a command with consistent logging.

    - Always logs the command.
    - Captures stdout/stderr unless capture=False; uncaptured commands share
      the terminal (and its stdin) with the installer, which interactive
      children such as the chroot entry script rely on.
    - Values listed in redact are masked in the log line.
    - A missing executable is reported as returncode 127, like a shell would.
    """

    argv_list = list(argv)
    shown = [("***" if a in redact else a) for a in argv_list] if redact else argv_list
    logger.info("CMD %s", fmt_argv(shown))

    try:
        p = subprocess.run(
            argv_list,
            input=input_text,
            text=True,
            stdout=subprocess.PIPE if capture else None,
            stderr=subprocess.PIPE if capture else None,
            cwd=cwd,
            env=dict(os.environ, **(env or {})),
            timeout=timeout,
        )
    except FileNotFoundError:
        if check:
            raise CommandError(shown, 127, f"{argv_list[0]}: command not found")
        return CmdResult(argv=argv_list, returncode=127, stdout="", stderr="command not found")
    except subprocess.TimeoutExpired:
        if check:
            raise CommandError(shown, 124, f"timed out after {timeout}s")
        return CmdResult(argv=argv_list, returncode=124, stdout="", stderr="timeout")

    stdout = p.stdout or ""
    stderr = p.stderr or ""
    if stdout:
        logger.debug("STDOUT %s", stdout.strip())
    if stderr:
        logger.debug("STDERR %s", stderr.strip())

    if check and p.returncode != 0:
        raise CommandError(shown, p.returncode, stderr)

    return CmdResult(argv=argv_list, returncode=p.returncode, stdout=stdout, stderr=stderr)


def have_cmd(name: str) -> bool:
    return shutil.which(name) is not None
