"""Construct Kubernetes objects for tests."""

from __future__ import annotations

from kubernetes_asyncio.client import (
    V1Container,
    V1GCEPersistentDiskVolumeSource,
    V1Node,
    V1NodeSpec,
    V1ObjectMeta,
    V1PersistentVolume,
    V1PersistentVolumeClaim,
    V1PersistentVolumeClaimSpec,
    V1PersistentVolumeClaimStatus,
    V1PersistentVolumeClaimVolumeSource,
    V1PersistentVolumeSpec,
    V1PersistentVolumeStatus,
    V1Pod,
    V1PodSpec,
    V1Volume,
    V1VolumeMount,
)

from .constants import (
    TEST_CONTAINER,
    TEST_NAMESPACE,
    TEST_NODE,
    TEST_POD,
    TEST_PROJECT,
    TEST_REGION,
    TEST_ZONE,
)

__all__ = [
    "build_node",
    "build_pod",
    "build_pv",
    "build_pvc",
    "build_region_labels",
]


def build_region_labels(
    region: str = TEST_REGION, zone: str = TEST_ZONE
) -> dict[str, str]:
    """Build the labels GKE adds to persistent volumes."""
    return {
        "failure-domain.beta.kubernetes.io/region": region,
        "failure-domain.beta.kubernetes.io/zone": zone,
    }


def build_node(
    name: str = TEST_NODE,
    provider_id: str | None = f"gce://{TEST_PROJECT}/{TEST_ZONE}/{TEST_NODE}",
) -> V1Node:
    """Build a node with a provider ID."""
    return V1Node(
        metadata=V1ObjectMeta(name=name),
        spec=V1NodeSpec(provider_id=provider_id),
    )


def build_pod(
    volumes: dict[str, str],
    *,
    mounts: dict[str, str] | None = None,
    container: str = TEST_CONTAINER,
) -> V1Pod:
    """Build a pod with volumes backed by persistent volume claims.

    Parameters
    ----------
    volumes
        Mapping of volume names to claim names.
    mounts
        Mapping of volume names to mount paths in the container. If not
        given, every volume is mounted under :file:`/mnt`.
    container
        Name of the container.
    """
    if mounts is None:
        mounts = {v: f"/mnt/{v}" for v in volumes}
    return V1Pod(
        metadata=V1ObjectMeta(name=TEST_POD, namespace=TEST_NAMESPACE),
        spec=V1PodSpec(
            node_name=TEST_NODE,
            containers=[
                V1Container(
                    name=container,
                    image="example/sidecar:1.0",
                    volume_mounts=[
                        V1VolumeMount(name=n, mount_path=p)
                        for n, p in mounts.items()
                    ],
                )
            ],
            volumes=[
                V1Volume(
                    name=n,
                    persistent_volume_claim=(
                        V1PersistentVolumeClaimVolumeSource(claim_name=c)
                    ),
                )
                for n, c in volumes.items()
            ],
        ),
    )


def build_pvc(
    name: str, volume_name: str | None, *, phase: str = "Bound"
) -> V1PersistentVolumeClaim:
    """Build a persistent volume claim bound to a persistent volume."""
    return V1PersistentVolumeClaim(
        metadata=V1ObjectMeta(name=name, namespace=TEST_NAMESPACE),
        spec=V1PersistentVolumeClaimSpec(volume_name=volume_name),
        status=V1PersistentVolumeClaimStatus(phase=phase),
    )


def build_pv(
    name: str,
    disk: str,
    *,
    phase: str = "Bound",
    labels: dict[str, str] | None = None,
    fs_type: str | None = "ext4",
    partition: int | None = None,
    read_only: bool | None = None,
) -> V1PersistentVolume:
    """Build a persistent volume backed by a GCE persistent disk."""
    if labels is None:
        labels = build_region_labels()
    return V1PersistentVolume(
        metadata=V1ObjectMeta(name=name, labels=labels),
        spec=V1PersistentVolumeSpec(
            gce_persistent_disk=V1GCEPersistentDiskVolumeSource(
                pd_name=disk,
                fs_type=fs_type,
                partition=partition,
                read_only=read_only,
            ),
        ),
        status=V1PersistentVolumeStatus(phase=phase),
    )
