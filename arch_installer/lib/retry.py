from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryResult:
    ok: bool
    value: Any = None
    attempts: int = 0
    error: Optional[BaseException] = None


def retry(
    times: int,
    interval: float,
    operation: Callable[[], Any],
    *,
    what: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
) -> RetryResult:
    """Call operation until it returns a truthy value, at most `times` times.

    An exception raised by the operation counts as a failed attempt. The
    interval is fixed; there is no sleep after the last attempt. The result
    carries the last error seen, if any.
    """

    attempts = max(1, int(times))
    last_error: Optional[BaseException] = None

    for n in range(1, attempts + 1):
        try:
            value = operation()
        except Exception as e:
            last_error = e
            logger.debug("%s: attempt %d/%d raised %s", what, n, attempts, e)
        else:
            if value:
                if n > 1:
                    logger.info("%s: succeeded after %d attempts", what, n)
                return RetryResult(ok=True, value=value, attempts=n, error=None)
            logger.debug("%s: attempt %d/%d not ready", what, n, attempts)

        if n < attempts:
            sleep(interval)

    logger.warning("%s: gave up after %d attempts", what, attempts)
    return RetryResult(ok=False, value=None, attempts=attempts, error=last_error)
