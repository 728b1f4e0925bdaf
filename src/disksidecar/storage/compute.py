"""Client for the GCE persistent disk API."""

from __future__ import annotations

import asyncio

from google.api_core.exceptions import GoogleAPIError
from google.cloud import compute_v1
from structlog.stdlib import BoundLogger

from ..exceptions import ProviderProtocolError, ProviderRequestError
from ..models.operation import DiskOperation

__all__ = ["DiskStorage"]


class DiskStorage:
    """Client for GCE persistent disks and zone operations.

    This client doesn't handle authentication and instead assumes that the
    default credentials will be sufficient. It should be run using workload
    identity.

    The Google compute client is synchronous, so each call is run in a worker
    thread. Callers still await every call in turn.

    Parameters
    ----------
    project_id
        GCP project containing the disks.
    logger
        Logger for messages.
    """

    def __init__(self, project_id: str, logger: BoundLogger) -> None:
        self._project = project_id
        self._logger = logger
        self._disks = compute_v1.DisksClient()
        self._operations = compute_v1.ZoneOperationsClient()

    async def get_size(self, disk: str, zone: str) -> int:
        """Get the size of a persistent disk.

        Parameters
        ----------
        disk
            Name of the persistent disk.
        zone
            Zone of the persistent disk.

        Returns
        -------
        int
            Size of the disk in GB.

        Raises
        ------
        ProviderRequestError
            Raised if the request to the compute API fails.
        """
        self._logger.debug(
            "Getting persistent disk",
            disk=disk,
            zone=zone,
            project=self._project,
        )
        try:
            result = await asyncio.to_thread(
                self._disks.get, project=self._project, zone=zone, disk=disk
            )
        except GoogleAPIError as e:
            msg = "Cannot get persistent disk"
            raise ProviderRequestError.from_exception(
                msg, e, disk=disk, zone=zone
            ) from e
        return int(result.size_gb)

    async def resize(self, disk: str, zone: str, size: int) -> DiskOperation:
        """Start resizing a persistent disk.

        Parameters
        ----------
        disk
            Name of the persistent disk.
        zone
            Zone of the persistent disk.
        size
            New size of the disk in GB.

        Returns
        -------
        DiskOperation
            Operation tracking the resize.

        Raises
        ------
        ProviderProtocolError
            Raised if the compute API returned no usable operation.
        ProviderRequestError
            Raised if the request to the compute API fails.
        """
        request = compute_v1.DisksResizeRequest(size_gb=size)
        try:
            operation = await asyncio.to_thread(
                self._disks.resize_unary,
                project=self._project,
                zone=zone,
                disk=disk,
                disks_resize_request_resource=request,
            )
        except GoogleAPIError as e:
            msg = "Cannot resize persistent disk"
            raise ProviderRequestError.from_exception(
                msg, e, disk=disk, zone=zone
            ) from e
        return self._convert(operation, "resize")

    async def get_operation(
        self, disk: str, zone: str, name: str
    ) -> DiskOperation:
        """Get the current status of a zone operation.

        Parameters
        ----------
        disk
            Name of the persistent disk the operation acts on.
        zone
            Zone in which the operation is running.
        name
            Name of the operation.

        Returns
        -------
        DiskOperation
            Current status of the operation.

        Raises
        ------
        ProviderProtocolError
            Raised if the compute API returned no usable operation.
        ProviderRequestError
            Raised if the request to the compute API fails.
        """
        try:
            operation = await asyncio.to_thread(
                self._operations.get,
                project=self._project,
                zone=zone,
                operation=name,
            )
        except GoogleAPIError as e:
            msg = f"Cannot get status of operation {name}"
            raise ProviderRequestError.from_exception(
                msg, e, disk=disk, zone=zone
            ) from e
        return self._convert(operation, "operation status")

    def _convert(
        self, operation: compute_v1.Operation | None, request: str
    ) -> DiskOperation:
        if operation is None or not operation.name:
            msg = f"No operation returned by compute API {request} request"
            raise ProviderProtocolError(msg)
        return DiskOperation.from_operation(operation)
