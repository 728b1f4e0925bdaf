"""Generic Kubernetes storage for namespaced objects that are only read.

The sidecar never modifies Kubernetes objects. It only reads its own pod and
the claims backing that pod's volumes, once, during startup.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from kubernetes_asyncio import client
from kubernetes_asyncio.client import (
    ApiClient,
    ApiException,
    V1PersistentVolumeClaim,
    V1Pod,
)
from structlog.stdlib import BoundLogger

from ...exceptions import KubernetesError
from ...models.kubernetes import KubernetesModel

__all__ = [
    "KubernetesObjectReader",
    "PersistentVolumeClaimStorage",
    "PodStorage",
]


class KubernetesObjectReader[T: KubernetesModel]:
    """Generic storage for namespaced Kubernetes objects supporting read.

    This class is not meant to be used directly by code outside of the
    Kubernetes storage layer. Use one of the kind-specific storage classes
    built on top of it instead.

    Parameters
    ----------
    read_method
        Method to read this type of object.
    object_type
        Type of object being acted on.
    kind
        Kubernetes kind of object being acted on.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        read_method: Callable[..., Awaitable[Any]],
        object_type: type[T],
        kind: str,
        logger: BoundLogger,
    ) -> None:
        self._read = read_method
        self._type = object_type
        self._kind = kind
        self._logger = logger

    async def read(self, name: str, namespace: str) -> T | None:
        """Read a Kubernetes object.

        Parameters
        ----------
        name
            Name of the object.
        namespace
            Namespace of the object.

        Returns
        -------
        typing.Any or None
            Kubernetes object, or `None` if it does not exist.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        self._logger.debug(
            f"Reading {self._kind}", name=name, namespace=namespace
        )
        try:
            return await self._read(name, namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise KubernetesError.from_exception(
                f"Error reading {self._kind}",
                e,
                kind=self._kind,
                namespace=namespace,
                name=name,
            ) from e


class PersistentVolumeClaimStorage(
    KubernetesObjectReader[V1PersistentVolumeClaim]
):
    """Storage layer for ``PersistentVolumeClaim`` objects.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        api = client.CoreV1Api(api_client)
        super().__init__(
            read_method=api.read_namespaced_persistent_volume_claim,
            object_type=V1PersistentVolumeClaim,
            kind="PersistentVolumeClaim",
            logger=logger,
        )


class PodStorage(KubernetesObjectReader[V1Pod]):
    """Storage layer for ``Pod`` objects.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        api = client.CoreV1Api(api_client)
        super().__init__(
            read_method=api.read_namespaced_pod,
            object_type=V1Pod,
            kind="Pod",
            logger=logger,
        )
