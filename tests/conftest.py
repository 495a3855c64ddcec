from typing import Dict, List, Optional

import pytest

from arch_installer.lib.command import CmdResult
from arch_installer.logging_utils import reset_logging


class FakeRun:
    """Stands in for run_cmd: records argv, answers from a prefix table."""

    def __init__(self, responses: Optional[Dict[tuple, object]] = None) -> None:
        self.calls: List[List[str]] = []
        self.kwargs: List[dict] = []
        self.responses = dict(responses or {})

    def __call__(self, argv, **kwargs) -> CmdResult:
        argv = list(argv)
        self.calls.append(argv)
        self.kwargs.append(kwargs)
        for prefix in sorted(self.responses, key=len, reverse=True):
            if tuple(argv[: len(prefix)]) == prefix:
                answer = self.responses[prefix]
                if callable(answer):
                    answer = answer(argv)
                if isinstance(answer, CmdResult):
                    return answer
                rc, out = answer if isinstance(answer, tuple) else (0, answer)
                return CmdResult(argv=argv, returncode=rc, stdout=out, stderr="" if rc == 0 else "failed")
        return CmdResult(argv=argv, returncode=0, stdout="", stderr="")

    def commands(self, name: str) -> List[List[str]]:
        return [c for c in self.calls if c and c[0] == name]


@pytest.fixture
def fake_run():
    return FakeRun()


@pytest.fixture
def zoneinfo(tmp_path):
    root = tmp_path / "zoneinfo"
    for name in ("UTC", "Europe/Berlin", "America/New_York"):
        p = root / name
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(b"TZif2")
    return root


@pytest.fixture(autouse=True)
def _clean_logging():
    yield
    reset_logging()
