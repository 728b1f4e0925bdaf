"""Component factory for the disk sidecar."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import aclosing, asynccontextmanager
from typing import Self

import structlog
from kubernetes_asyncio.client.api_client import ApiClient
from safir.kubernetes import initialize_kubernetes
from safir.slack.webhook import SlackWebhookClient
from structlog.stdlib import BoundLogger

from .config import Config
from .constants import ROOT_LOGGER
from .exceptions import MissingObjectError
from .services.controller import EscalationController
from .services.resizer import DiskResizer
from .services.resolver import VolumeResolver, find_container
from .storage.compute import DiskStorage
from .storage.filesystem import FilesystemStorage
from .storage.kubernetes.node import NodeStorage
from .storage.kubernetes.pv import PersistentVolumeStorage
from .storage.kubernetes.reader import (
    PersistentVolumeClaimStorage,
    PodStorage,
)

__all__ = ["Factory", "build_slack_client"]


def build_slack_client(
    config: Config, logger: BoundLogger
) -> SlackWebhookClient | None:
    """Create a Slack client for alerts, if alerts are configured.

    Parameters
    ----------
    config
        Sidecar configuration.
    logger
        Logger the client uses for its own failures.

    Returns
    -------
    SlackWebhookClient or None
        Newly-created Slack client, or `None` if no webhook is set.
    """
    if not config.alert_hook:
        return None
    return SlackWebhookClient(
        config.alert_hook.get_secret_value(), "Disk sidecar", logger=logger
    )


class Factory:
    """Build disk sidecar components.

    Parameters
    ----------
    config
        Sidecar configuration.
    kubernetes_client
        Shared Kubernetes API client.
    logger
        Logger to use for messages.
    """

    @classmethod
    @asynccontextmanager
    async def standalone(cls, config: Config) -> AsyncIterator[Self]:
        """Async context manager for disk sidecar components.

        Parameters
        ----------
        config
            Sidecar configuration.

        Yields
        ------
        Factory
            Newly-created factory. Must be used as a context manager.
        """
        logger = structlog.get_logger(ROOT_LOGGER)
        await initialize_kubernetes()
        factory = cls(config, ApiClient(), logger)
        async with aclosing(factory):
            yield factory

    def __init__(
        self,
        config: Config,
        kubernetes_client: ApiClient,
        logger: BoundLogger,
    ) -> None:
        self._config = config
        self._kubernetes_client = kubernetes_client
        self._logger = logger

    async def aclose(self) -> None:
        """Shut down the factory.

        After this method is called, the factory object is no longer valid and
        must not be used.
        """
        await self._kubernetes_client.close()

    def create_filesystem_storage(self) -> FilesystemStorage:
        """Create the storage layer for host filesystem operations.

        Returns
        -------
        FilesystemStorage
            Newly-created filesystem storage.
        """
        return FilesystemStorage(self._logger)

    def create_disk_storage(self, project_id: str) -> DiskStorage:
        """Create a client for the GCE persistent disk API.

        Parameters
        ----------
        project_id
            GCP project containing the disks.

        Returns
        -------
        DiskStorage
            Newly-created disk storage.
        """
        return DiskStorage(project_id, self._logger)

    def create_node_storage(self) -> NodeStorage:
        """Create the storage layer for Kubernetes nodes.

        Returns
        -------
        NodeStorage
            Newly-created node storage.
        """
        return NodeStorage(self._kubernetes_client, self._logger)

    def create_pod_storage(self) -> PodStorage:
        """Create the storage layer for Kubernetes pods.

        Returns
        -------
        PodStorage
            Newly-created pod storage.
        """
        return PodStorage(self._kubernetes_client, self._logger)

    def create_slack_client(self) -> SlackWebhookClient | None:
        """Create a Slack client for alerts, if alerts are configured.

        Returns
        -------
        SlackWebhookClient or None
            Newly-created Slack client, or `None` if no webhook is set.
        """
        return build_slack_client(self._config, self._logger)

    def create_volume_resolver(
        self, filesystem: FilesystemStorage | None = None
    ) -> VolumeResolver:
        """Create a service to resolve pod volumes to persistent disks.

        Parameters
        ----------
        filesystem
            Filesystem storage to use to find devices. If not given, a new
            one is created.

        Returns
        -------
        VolumeResolver
            Newly-created volume resolver.
        """
        return VolumeResolver(
            pvc_storage=PersistentVolumeClaimStorage(
                self._kubernetes_client, self._logger
            ),
            pv_storage=PersistentVolumeStorage(
                self._kubernetes_client, self._logger
            ),
            filesystem=filesystem or self.create_filesystem_storage(),
            logger=self._logger,
        )

    async def create_controller(
        self, filesystem: FilesystemStorage | None = None
    ) -> EscalationController:
        """Discover the volumes to watch and create the controller.

        Reads the pod in which the sidecar is running and the node it is
        running on, and resolves every configured volume. Any failure is
        fatal.

        Parameters
        ----------
        filesystem
            Filesystem storage to use. If not given, a new one is created.

        Returns
        -------
        EscalationController
            Newly-created controller for the resolved volumes.

        Raises
        ------
        InvalidProviderError
            Raised if the node is not a GCE instance.
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        MissingObjectError
            Raised if the pod, its node, or the container does not exist.
        ResolutionError
            Raised if any of the volumes cannot be monitored.
        """
        config = self._config
        filesystem = filesystem or self.create_filesystem_storage()
        pod = await self.create_pod_storage().read(
            config.pod_name, config.namespace
        )
        if not pod:
            msg = f"Pod {config.namespace}/{config.pod_name} not found"
            raise MissingObjectError(
                msg,
                kind="Pod",
                namespace=config.namespace,
                name=config.pod_name,
            )
        project_id = config.project_id
        if not project_id:
            project_id = await self._discover_project(pod.spec.node_name)
        container = find_container(pod, config.container_name)

        resolver = self.create_volume_resolver(filesystem)
        volumes = await resolver.resolve(pod, container, config.volumes)
        for volume in volumes:
            self._logger.info(
                "Monitoring volume",
                volume=volume.name,
                mounted_path=str(volume.mounted_path),
                device_path=str(volume.device_path),
                disk=volume.disk_name,
                region=volume.region,
                zone=volume.zone,
                project=project_id,
            )

        resizer = DiskResizer(
            self.create_disk_storage(project_id),
            poll_interval=config.operation_poll_interval,
            timeout=config.operation_timeout,
            logger=self._logger,
        )
        return EscalationController(
            volumes=volumes,
            filesystem=filesystem,
            resizer=resizer,
            threshold=config.threshold,
            expand_by=config.expand_by,
            poll_period=config.poll_period,
            settle_delay=config.settle_delay,
            slack_client=self.create_slack_client(),
            logger=self._logger,
        )

    async def _discover_project(self, node_name: str | None) -> str:
        """Find the GCP project of the node running the pod."""
        node_storage = self.create_node_storage()
        node = await node_storage.read(node_name) if node_name else None
        if not node:
            msg = f"Node {node_name} running the sidecar not found"
            raise MissingObjectError(msg, kind="Node", name=node_name)
        return node_storage.get_project_id(node)
