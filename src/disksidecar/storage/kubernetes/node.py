"""Storage layer for Kubernetes node objects."""

from __future__ import annotations

from urllib.parse import urlparse

from kubernetes_asyncio import client
from kubernetes_asyncio.client import ApiClient, ApiException, V1Node
from structlog.stdlib import BoundLogger

from ...constants import GCE_PROVIDER_SCHEME
from ...exceptions import InvalidProviderError, KubernetesError

__all__ = ["NodeStorage"]


class NodeStorage:
    """Storage layer for Kubernetes node objects.

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

    def get_project_id(self, node: V1Node) -> str:
        """Determine the GCP project a node is running in.

        GKE nodes have a ``providerID`` of the form
        ``gce://<project>/<zone>/<instance>``.

        Parameters
        ----------
        node
            Kubernetes node.

        Returns
        -------
        str
            GCP project ID.

        Raises
        ------
        InvalidProviderError
            Raised if the node is not a GCE instance.
        """
        provider_id = node.spec.provider_id if node.spec else None
        if not provider_id:
            msg = f"Node {node.metadata.name} has no provider ID"
            raise InvalidProviderError(msg)
        uri = urlparse(provider_id)
        if uri.scheme != GCE_PROVIDER_SCHEME or not uri.netloc:
            msg = (
                f"Node {node.metadata.name} is not a GCE instance"
                f" (provider ID {provider_id})"
            )
            raise InvalidProviderError(msg)
        return uri.netloc

    async def read(self, name: str) -> V1Node | None:
        """Read a node.

        Parameters
        ----------
        name
            Name of the node.

        Returns
        -------
        kubernetes_asyncio.client.models.V1Node or None
            Node, or `None` if it does not exist.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        self._logger.debug("Reading node", name=name)
        try:
            return await self._api.read_node(name)
        except ApiException as e:
            if e.status == 404:
                return None
            raise KubernetesError.from_exception(
                "Error reading node information", e, kind="Node", name=name
            ) from e
