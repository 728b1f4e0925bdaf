"""Timeout class for waiting on provider operations."""

from __future__ import annotations

from datetime import datetime, timedelta

from safir.datetime import current_datetime

__all__ = ["Timeout"]


class Timeout:
    """Track a cumulative timeout on a series of operations.

    Waiting for a disk resize involves repeated status checks separated by
    sleeps, all of which must complete within a total timeout. This class
    encapsulates that type of timeout.

    Parameters
    ----------
    timeout
        Total time allowed.
    """

    def __init__(self, timeout: timedelta) -> None:
        self._timeout = timeout
        self._start = current_datetime(microseconds=True)

    @property
    def started_at(self) -> datetime:
        """When the timeout started."""
        return self._start

    def elapsed(self) -> float:
        """Elapsed time since the timeout started.

        Returns
        -------
        float
            Seconds elapsed since the object was created.
        """
        now = current_datetime(microseconds=True)
        return (now - self._start).total_seconds()

    def left(self) -> float:
        """Return the amount of time remaining in seconds.

        Returns
        -------
        float
            Seconds remaining in the timeout.

        Raises
        ------
        TimeoutError
            Raised if the timeout has expired.
        """
        now = current_datetime(microseconds=True)
        left = (self._timeout - (now - self._start)).total_seconds()
        if left <= 0.0:
            raise TimeoutError(f"Operation timed out after {self.elapsed()}s")
        return left
