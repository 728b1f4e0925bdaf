"""Fake host filesystem for tests.

Mount lookups and filesystem grows run small shell scripts in place of
:command:`findmnt` and :command:`resize2fs`, and `os.statvfs` is replaced
with a function that reports configured usage percentages.
"""

from __future__ import annotations

import os
from collections import deque
from pathlib import Path
from types import SimpleNamespace

import pytest
import structlog

from disksidecar.storage.filesystem import FilesystemStorage

__all__ = ["MockFilesystem"]

_BLOCKS = 1000
"""Total blocks reported for every filesystem."""


class MockFilesystem:
    """Fake mounts, usage and resize tool for the filesystem storage layer.

    Parameters
    ----------
    root
        Temporary directory to hold device nodes, scripts and logs.
    monkeypatch
        Used to replace `os.statvfs`.
    """

    def __init__(self, root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        self._mounts: dict[str, Path] = {}
        self._usage: dict[str, deque[int]] = {}
        self._dev = root / "dev"
        self._dev.mkdir()
        self._grow_log = root / "grow.log"
        self._grow_log.touch()
        self.findmnt = root / "findmnt"
        self.resize = root / "resize2fs"
        self._write_findmnt()
        self.set_resize_status(0)
        monkeypatch.setattr(os, "statvfs", self._statvfs)

    def add_mount(self, mount_path: str, *, device: str | None = None) -> Path:
        """Add a mounted volume.

        Parameters
        ----------
        mount_path
            Path at which the volume is mounted.
        device
            If given, path reported as the mounted device, which need not
            exist. Otherwise a device node is created.

        Returns
        -------
        Path
            Path to the device.
        """
        if device:
            path = Path(device)
        else:
            path = self._dev / Path(mount_path).name
            path.touch()
        self._mounts[mount_path] = path
        self._write_findmnt()
        return path

    def build_storage(self) -> FilesystemStorage:
        """Create a filesystem storage layer that uses this fake."""
        return FilesystemStorage(
            structlog.get_logger(__name__),
            findmnt_command=[str(self.findmnt)],
            resize_command=[str(self.resize)],
        )

    def get_grown_devices(self) -> list[str]:
        """Get the devices passed to the resize tool, in order."""
        return self._grow_log.read_text().splitlines()

    def set_resize_status(self, status: int, output: str = "") -> None:
        """Set the exit status and error output of the resize tool.

        Parameters
        ----------
        status
            Exit status.
        output
            Message printed on standard error.
        """
        script = (
            "#!/bin/sh\n"
            f'echo "$1" >> "{self._grow_log}"\n'
            f"echo '{output}' >&2\n"
            f"exit {status}\n"
        )
        self._write_script(self.resize, script)

    def set_usage(self, mount_path: str, *usage: int) -> None:
        """Set the usage reported for a mount path.

        Each call to `os.statvfs` returns the next usage percentage. The last
        one is then returned forever.

        Parameters
        ----------
        mount_path
            Path of the mount.
        *usage
            Usage percentages to report.
        """
        self._usage[mount_path] = deque(usage)

    def _statvfs(self, path: str | os.PathLike[str]) -> SimpleNamespace:
        key = str(path)
        usage = self._usage.get(key)
        if not usage:
            raise FileNotFoundError(2, "No such file or directory", key)
        value = usage.popleft() if len(usage) > 1 else usage[0]
        available = _BLOCKS - _BLOCKS * value // 100
        return SimpleNamespace(f_blocks=_BLOCKS, f_bavail=available)

    def _write_findmnt(self) -> None:
        lines = ["#!/bin/sh", 'case "$1" in']
        for mount, device in self._mounts.items():
            lines.append(f"  {mount}) echo {device} ;;")
        lines.append('  *) echo "$1: not a mount point" >&2; exit 1 ;;')
        lines.append("esac")
        self._write_script(self.findmnt, "\n".join(lines) + "\n")

    def _write_script(self, path: Path, script: str) -> None:
        path.write_text(script)
        path.chmod(0o755)
