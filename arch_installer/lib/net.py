from __future__ import annotations

import logging
import time
from typing import Callable

from .command import run_cmd
from .retry import RetryResult, retry

logger = logging.getLogger(__name__)

PROBE_HOST = "archlinux.org"


def is_online(host: str = PROBE_HOST) -> bool:
    """Single reachability probe (one ICMP echo, 3s timeout)."""

    r = run_cmd(["ping", "-c", "1", "-W", "3", host], check=False)
    return r.returncode == 0


def wait_online(
    *,
    retries: int = 10,
    interval: float = 3.0,
    host: str = PROBE_HOST,
    sleep: Callable[[float], None] = time.sleep,
) -> RetryResult:
    return retry(retries, interval, lambda: is_online(host), what=f"reachability of {host}", sleep=sleep)
