"""Resolve pod volumes to the GCE persistent disks backing them."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

from kubernetes_asyncio.client import (
    V1Container,
    V1GCEPersistentDiskVolumeSource,
    V1PersistentVolume,
    V1Pod,
    V1Volume,
)
from structlog.stdlib import BoundLogger

from ..constants import REGION_LABELS, SUPPORTED_FILESYSTEM, ZONE_LABELS
from ..exceptions import (
    InvalidVolumeError,
    MissingObjectError,
    NotDeclaredError,
    NotMountedError,
    UnboundVolumeError,
)
from ..models.kubernetes import (
    PersistentVolumeClaimPhase,
    PersistentVolumePhase,
)
from ..models.volume import MountedVolume
from ..storage.filesystem import FilesystemStorage
from ..storage.kubernetes.pv import PersistentVolumeStorage
from ..storage.kubernetes.reader import PersistentVolumeClaimStorage

__all__ = ["VolumeResolver", "find_container"]


def find_container(pod: V1Pod, name: str) -> V1Container:
    """Find a container in a pod by name.

    Parameters
    ----------
    pod
        Pod to search.
    name
        Name of the container.

    Returns
    -------
    kubernetes_asyncio.client.models.V1Container
        Matching container.

    Raises
    ------
    MissingObjectError
        Raised if the pod has no container with that name.
    """
    for container in pod.spec.containers or []:
        if container.name == name:
            return container
    msg = f"Container {name} not found in pod {pod.metadata.name}"
    raise MissingObjectError(
        msg,
        kind="Container",
        namespace=pod.metadata.namespace,
        name=name,
    )


class VolumeResolver:
    """Turn pod volume names into validated, mounted persistent disks.

    Resolution happens once at startup and is all or nothing: if any volume
    cannot be resolved, no volumes are returned and the error is raised.

    Parameters
    ----------
    pvc_storage
        Storage for persistent volume claims.
    pv_storage
        Storage for persistent volumes.
    filesystem
        Host filesystem operations, used to find mounted devices.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        pvc_storage: PersistentVolumeClaimStorage,
        pv_storage: PersistentVolumeStorage,
        filesystem: FilesystemStorage,
        logger: BoundLogger,
    ) -> None:
        self._pvc_storage = pvc_storage
        self._pv_storage = pv_storage
        self._filesystem = filesystem
        self._logger = logger

    async def resolve(
        self, pod: V1Pod, container: V1Container, names: list[str]
    ) -> list[MountedVolume]:
        """Resolve the named volumes.

        Parameters
        ----------
        pod
            Pod whose volumes should be resolved.
        container
            Container in that pod into which the volumes are mounted.
        names
            Names of the pod volumes to resolve.

        Returns
        -------
        list of MountedVolume
            One resolved volume per name, in the same order.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        MissingObjectError
            Raised if a claim or persistent volume does not exist.
        ResolutionError
            Raised if any volume cannot be monitored.
        """
        volumes = {v.name: v for v in pod.spec.volumes or []}
        mounts = {m.name: m for m in container.volume_mounts or []}
        namespace = pod.metadata.namespace

        seen = set()
        results = []
        for name in names:
            if name in seen:
                msg = f"Volume {name} requested more than once"
                raise InvalidVolumeError(msg, name)
            seen.add(name)
            volume = volumes.get(name)
            if not volume:
                msg = (
                    f"Volume {name} does not exist in pod"
                    f" {pod.metadata.name}"
                )
                raise NotDeclaredError(msg, name)
            mount = mounts.get(name)
            if not mount:
                msg = (
                    f"Volume {name} is not mounted to container"
                    f" {container.name}"
                )
                raise NotMountedError(msg, name)
            if mount.read_only:
                msg = f"Volume {name} is mounted read-only"
                raise InvalidVolumeError(msg, name)
            pv = await self._get_persistent_volume(volume, namespace)
            results.append(
                await self._build_volume(name, Path(mount.mount_path), pv)
            )
        return results

    async def _get_persistent_volume(
        self, volume: V1Volume, namespace: str
    ) -> V1PersistentVolume:
        """Follow a pod volume through its claim to the bound volume."""
        name = volume.name
        if volume.gce_persistent_disk:
            msg = (
                f"Volume {name} cannot be a short-hand bound persistent"
                " disk, must use a PersistentVolumeClaim"
            )
            raise InvalidVolumeError(msg, name)
        if not volume.persistent_volume_claim:
            msg = f"Volume {name} is not a PersistentVolumeClaim"
            raise InvalidVolumeError(msg, name)

        pvc_name = volume.persistent_volume_claim.claim_name
        self._logger.debug("Reading PersistentVolumeClaim", name=pvc_name)
        pvc = await self._pvc_storage.read(pvc_name, namespace)
        if not pvc:
            msg = f"PersistentVolumeClaim {namespace}/{pvc_name} not found"
            raise MissingObjectError(
                msg,
                kind="PersistentVolumeClaim",
                namespace=namespace,
                name=pvc_name,
            )
        phase = pvc.status.phase if pvc.status else None
        if phase != PersistentVolumeClaimPhase.BOUND.value:
            msg = (
                f"PersistentVolumeClaim {pvc_name} phase is not Bound,"
                f" instead {phase}"
            )
            raise UnboundVolumeError(msg, name)

        pv_name = pvc.spec.volume_name
        self._logger.debug("Reading PersistentVolume", name=pv_name)
        pv = await self._pv_storage.read(pv_name) if pv_name else None
        if not pv:
            msg = (
                f"PersistentVolume {pv_name} bound to PersistentVolumeClaim"
                f" {pvc_name} not found"
            )
            raise MissingObjectError(
                msg, kind="PersistentVolume", name=pv_name
            )
        phase = pv.status.phase if pv.status else None
        if phase != PersistentVolumePhase.BOUND.value:
            msg = (
                f"Volume {name}: PersistentVolume {pv_name} phase is not"
                f" Bound, instead {phase}"
            )
            raise UnboundVolumeError(msg, name)
        return pv

    async def _build_volume(
        self, name: str, mount_path: Path, pv: V1PersistentVolume
    ) -> MountedVolume:
        """Check the persistent volume and find its device."""
        pv_name = pv.metadata.name
        pd = pv.spec.gce_persistent_disk
        if not pd:
            msg = (
                f"Volume {name}: PersistentVolume {pv_name} is not a GCE"
                " persistent disk"
            )
            raise InvalidVolumeError(msg, name)
        labels = pv.metadata.labels or {}
        region = self._get_label(labels, REGION_LABELS, name, pv_name)
        zone = self._get_label(labels, ZONE_LABELS, name, pv_name)
        self._check_disk(name, pd)

        self._logger.debug(
            "Resolving device path", mount_path=str(mount_path)
        )
        device = await self._filesystem.resolve_device(name, mount_path)
        return MountedVolume(
            name=name,
            mounted_path=mount_path,
            device_path=device,
            disk_name=pd.pd_name,
            region=region,
            zone=zone,
        )

    def _check_disk(
        self, name: str, pd: V1GCEPersistentDiskVolumeSource
    ) -> None:
        """Check that a persistent disk can be grown safely."""
        if pd.partition:
            msg = f"Volume {name}: PD {pd.pd_name} uses a partition"
            raise InvalidVolumeError(msg, name)
        if pd.read_only:
            msg = f"Volume {name}: PD {pd.pd_name} is read only"
            raise InvalidVolumeError(msg, name)
        if pd.fs_type and pd.fs_type != SUPPORTED_FILESYSTEM:
            msg = (
                f"Volume {name}: PD {pd.pd_name} is not an"
                f" {SUPPORTED_FILESYSTEM} volume"
            )
            raise InvalidVolumeError(msg, name)

    def _get_label(
        self,
        labels: Mapping[str, str],
        keys: tuple[str, ...],
        name: str,
        pv_name: str,
    ) -> str:
        """Get the first label present out of a list of equivalent keys."""
        for key in keys:
            if value := labels.get(key):
                return value
        msg = (
            f"Volume {name}: PersistentVolume {pv_name} missing {keys[0]}"
            " label"
        )
        raise InvalidVolumeError(msg, name)
