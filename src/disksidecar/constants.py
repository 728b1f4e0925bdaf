"""Global constants."""

from datetime import timedelta

__all__ = [
    "CONFIG_FILE_ENV_VAR",
    "DEFAULT_EXPAND_BY",
    "DEFAULT_OPERATION_POLL_INTERVAL",
    "DEFAULT_POLL_PERIOD",
    "DEFAULT_SETTLE_DELAY",
    "DEFAULT_THRESHOLD",
    "ENV_PREFIX",
    "FINDMNT_COMMAND",
    "GCE_PROVIDER_SCHEME",
    "REGION_LABELS",
    "RESIZE_COMMAND",
    "ROOT_LOGGER",
    "SUPPORTED_FILESYSTEM",
    "ZONE_LABELS",
]

ENV_PREFIX = "DISK_SIDECAR_"
"""Prefix for all environment variables that override configuration."""

CONFIG_FILE_ENV_VAR = f"{ENV_PREFIX}CONFIG_FILE"
"""Environment variable pointing to an optional YAML configuration file."""

ROOT_LOGGER = "disksidecar"
"""Name of the logger used for all sidecar messages."""

DEFAULT_THRESHOLD = 80
"""Usage percentage at or above which pressure relief starts."""

DEFAULT_EXPAND_BY = 20
"""Percentage of the current disk size to add on each disk resize."""

DEFAULT_POLL_PERIOD = timedelta(seconds=60)
"""How long to sleep between passes over all monitored volumes."""

DEFAULT_OPERATION_POLL_INTERVAL = timedelta(seconds=30)
"""How frequently to check the status of a pending disk resize."""

DEFAULT_SETTLE_DELAY = timedelta(seconds=10)
"""How long to wait after a disk resize before growing the filesystem.

The guest kernel needs a moment to notice the new size of the block device.
"""

FINDMNT_COMMAND = ("findmnt", "-o", "source", "--noheadings")
"""Command (without the mount path) used to find the device of a mount."""

RESIZE_COMMAND = ("resize2fs",)
"""Command (without the device path) used to grow an ext4 filesystem."""

SUPPORTED_FILESYSTEM = "ext4"
"""Only filesystem type that can be grown, if one is declared."""

GCE_PROVIDER_SCHEME = "gce"
"""Scheme of the node ``providerID`` for nodes running on GCE."""

REGION_LABELS = (
    "failure-domain.beta.kubernetes.io/region",
    "topology.kubernetes.io/region",
)
"""Persistent volume labels holding the region, in order of preference."""

ZONE_LABELS = (
    "failure-domain.beta.kubernetes.io/zone",
    "topology.kubernetes.io/zone",
)
"""Persistent volume labels holding the zone, in order of preference."""
