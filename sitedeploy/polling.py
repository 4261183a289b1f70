"""Fixed-interval polling shared by the stack and certificate waits."""

import logging
import time

from .errors import PollTimeout

logger = logging.getLogger(__name__)


def poll_until(fetch, done, *, interval: float, max_attempts: int, sleep=time.sleep, what: str = "condition"):
    """Call ``fetch`` until ``done(value)`` holds, at most ``max_attempts`` times.

    Sleeps ``interval`` seconds between attempts, never after the last one.
    Returns the first satisfying value or raises PollTimeout carrying the
    last value fetched.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    last = None
    for attempt in range(1, max_attempts + 1):
        last = fetch()
        if done(last):
            return last
        logger.debug("Waiting for %s (attempt %d/%d)", what, attempt, max_attempts)
        if attempt < max_attempts:
            sleep(interval)

    raise PollTimeout(f"Timed out waiting for {what} after {max_attempts} attempts", last=last, attempts=max_attempts)
