"""Models for monitored volumes and the outcome of checking them."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

__all__ = [
    "EscalationResult",
    "MountedVolume",
]


@dataclass(frozen=True, slots=True)
class MountedVolume:
    """A validated volume backed by a GCE persistent disk.

    Created once at startup by the volume resolver and never modified or
    revalidated afterwards.
    """

    name: str
    """Name of the volume in the pod specification."""

    mounted_path: Path
    """Where the volume is mounted in the container."""

    device_path: Path
    """Block device backing the mount."""

    disk_name: str
    """Name of the GCE persistent disk."""

    region: str
    """GCP region of the persistent disk."""

    zone: str
    """GCP zone of the persistent disk."""


class EscalationResult(Enum):
    """How one poll tick ended for one volume."""

    NO_ACTION = "no_action"
    """Usage was under the threshold."""

    RELIEVED_BY_FILESYSTEM = "relieved_by_filesystem"
    """Growing the filesystem to the size of the device was enough."""

    RELIEVED_BY_DISK = "relieved_by_disk"
    """The persistent disk was resized and the filesystem grown."""

    FAILED = "failed"
    """Some step of the escalation raised an error."""

    EXHAUSTED = "exhausted"
    """Every step succeeded but usage is still over the threshold."""
