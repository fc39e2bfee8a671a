"""Retry a probe until the Flutter widget tree is ready."""

import time
from collections.abc import Callable
from typing import TypeVar

from loguru import logger

from flutterdump.exceptions import RemoteRpcError, StabilizationTimeout

T = TypeVar("T")

# Emitted by the inspector while the widget tree is still being built
NOT_READY_SIGNATURE = "Null check operator used on a null value"


def is_transient_not_ready_error(message: str) -> bool:
    """Check if an error message means the widget tree is not built yet."""
    return NOT_READY_SIGNATURE in (message or "")


def wait_for_ready(
    probe: Callable[[], T],
    max_attempts: int,
    interval: float,
    *,
    description: str = "probe",
    sleep: Callable[[float], None] = time.sleep,
    log=logger,
) -> T:
    """Call ``probe`` until it succeeds or the attempt budget is exhausted.

    Only remote errors matching :func:`is_transient_not_ready_error` are
    retried; any other error is raised immediately.

    Args:
        probe: Zero-argument callable issuing the readiness request.
        max_attempts: Maximum number of calls to ``probe``.
        interval: Seconds to wait between attempts.
        description: Name used in logs and the timeout message.
        sleep: Sleep function (replaceable in tests).
        log: Logger.

    Returns:
        The first successful probe result.

    Raises:
        StabilizationTimeout: If every attempt hit the transient error.
    """
    for attempt in range(1, max_attempts + 1):
        log.info("{} attempt {}/{}", description, attempt, max_attempts)
        try:
            result = probe()
        except RemoteRpcError as e:
            if not is_transient_not_ready_error(str(e)):
                log.error("{} failed: {}", description, e)
                raise
            log.info("Widget tree not ready yet, retrying in {}s", interval)
            if attempt < max_attempts:
                sleep(interval)
            continue

        log.info("{} succeeded", description)
        return result

    raise StabilizationTimeout(max_attempts, description)
