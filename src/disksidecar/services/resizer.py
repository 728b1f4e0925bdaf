"""Growing GCE persistent disks."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from datetime import timedelta

from safir.datetime import current_datetime
from structlog.stdlib import BoundLogger

from ..exceptions import OperationTimeoutError, ProviderOperationError
from ..models.operation import DiskOperation, OperationErrorDetail
from ..models.volume import MountedVolume
from ..storage.compute import DiskStorage
from ..timeout import Timeout

__all__ = [
    "DiskResizer",
    "aggregate_operation_errors",
    "compute_new_size",
]


def aggregate_operation_errors(
    errors: Iterable[OperationErrorDetail | None],
) -> ProviderOperationError | None:
    """Flatten the errors reported by an operation into one exception.

    Parameters
    ----------
    errors
        Errors reported by the operation. Missing entries and entries with
        empty messages are skipped.

    Returns
    -------
    ProviderOperationError or None
        Exception listing every error message in order, or `None` if there
        were no errors to report.
    """
    messages = [e.message for e in errors if e and e.message]
    if not messages:
        return None
    return ProviderOperationError(messages)


def compute_new_size(size: int, expand_by: int) -> int:
    """Compute the new size of a disk.

    Parameters
    ----------
    size
        Current size in GB.
    expand_by
        Percentage of the current size to add.

    Returns
    -------
    int
        New size in GB, always at least 1GB larger than the current size.
    """
    # Ceiling division, kept in integers to avoid float rounding.
    growth = -(-size * expand_by // 100)
    return size + max(1, growth)


class DiskResizer:
    """Grow persistent disks and wait for the resize to finish.

    Parameters
    ----------
    storage
        Client for the persistent disk API.
    poll_interval
        How long to wait between checks of the resize operation.
    timeout
        If set, the longest to wait for a resize operation to finish. If
        `None`, wait until the compute API reports it done.
    logger
        Logger to use.
    """

    def __init__(
        self,
        storage: DiskStorage,
        *,
        poll_interval: timedelta,
        timeout: timedelta | None = None,
        logger: BoundLogger,
    ) -> None:
        self._storage = storage
        self._poll_interval = poll_interval
        self._timeout = timeout
        self._logger = logger

    async def resize(self, volume: MountedVolume, expand_by: int) -> int:
        """Grow the persistent disk backing a volume.

        Parameters
        ----------
        volume
            Volume whose disk should grow.
        expand_by
            Percentage of the current size to add.

        Returns
        -------
        int
            New size of the disk in GB.

        Raises
        ------
        OperationTimeoutError
            Raised if a timeout is configured and the resize did not finish
            in time.
        ProviderOperationError
            Raised if the resize finished with errors.
        ProviderProtocolError
            Raised if the compute API returned no usable operation.
        ProviderRequestError
            Raised if a request to the compute API failed.
        """
        logger = self._logger.bind(
            disk=volume.disk_name, zone=volume.zone, region=volume.region
        )
        size = await self._storage.get_size(volume.disk_name, volume.zone)
        new_size = compute_new_size(size, expand_by)
        logger.info(
            "Resizing persistent disk", old_size=size, new_size=new_size
        )
        operation = await self._storage.resize(
            volume.disk_name, volume.zone, new_size
        )
        operation = await self._wait(volume, operation)
        if error := aggregate_operation_errors(operation.errors):
            raise error
        logger.info("Persistent disk resized", size=new_size)
        return new_size

    async def _wait(
        self, volume: MountedVolume, operation: DiskOperation
    ) -> DiskOperation:
        """Poll an operation until it is done."""
        timeout = None
        if self._timeout is not None:
            timeout = Timeout(self._timeout)
        interval = self._poll_interval.total_seconds()
        while not operation.done:
            self._logger.debug(
                "Waiting for resize operation",
                disk=volume.disk_name,
                operation=operation.name,
                status=operation.status.value,
            )
            delay = interval
            if timeout is not None:
                try:
                    delay = min(interval, timeout.left())
                except TimeoutError as e:
                    raise OperationTimeoutError(
                        operation.name,
                        started_at=timeout.started_at,
                        failed_at=current_datetime(microseconds=True),
                    ) from e
            await asyncio.sleep(delay)
            operation = await self._storage.get_operation(
                volume.disk_name, volume.zone, operation.name
            )
        return operation
