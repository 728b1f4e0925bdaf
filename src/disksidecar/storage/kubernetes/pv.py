"""Storage layer for ``PersistentVolume`` objects."""

from __future__ import annotations

from kubernetes_asyncio import client
from kubernetes_asyncio.client import (
    ApiClient,
    ApiException,
    V1PersistentVolume,
)
from structlog.stdlib import BoundLogger

from ...exceptions import KubernetesError

__all__ = ["PersistentVolumeStorage"]


class PersistentVolumeStorage:
    """Storage layer for ``PersistentVolume`` objects.

    Persistent volumes are not namespaced, so they don't fit the generic
    reader.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        self._api = client.CoreV1Api(api_client)
        self._logger = logger

    async def read(self, name: str) -> V1PersistentVolume | None:
        """Read a persistent volume.

        Parameters
        ----------
        name
            Name of the persistent volume.

        Returns
        -------
        kubernetes_asyncio.client.models.V1PersistentVolume or None
            PersistentVolume, or `None` if it does not exist.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        self._logger.debug("Reading PersistentVolume", name=name)
        try:
            return await self._api.read_persistent_volume(name)
        except ApiException as e:
            if e.status == 404:
                return None
            raise KubernetesError.from_exception(
                "Error reading persistent volume",
                e,
                kind="PersistentVolume",
                name=name,
            ) from e
