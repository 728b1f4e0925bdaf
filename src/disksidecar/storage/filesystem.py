"""Host operations on mounted filesystems and their block devices."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Sequence
from pathlib import Path

from structlog.stdlib import BoundLogger

from ..constants import FINDMNT_COMMAND, RESIZE_COMMAND
from ..exceptions import DevicePathError, ResizeToolError, StatError

__all__ = ["FilesystemStorage"]


class FilesystemStorage:
    """Query and grow filesystems on the local host.

    Holds no state other than the commands to run, so it is safe to share
    between volumes.

    Parameters
    ----------
    logger
        Logger to use.
    findmnt_command
        Command used to find the source device of a mount. The mount path is
        appended as the final argument.
    resize_command
        Command used to grow a filesystem. The device path is appended as the
        final argument.
    """

    def __init__(
        self,
        logger: BoundLogger,
        *,
        findmnt_command: Sequence[str] = FINDMNT_COMMAND,
        resize_command: Sequence[str] = RESIZE_COMMAND,
    ) -> None:
        self._logger = logger
        self._findmnt = list(findmnt_command)
        self._resize = list(resize_command)

    def get_usage(self, path: Path) -> int:
        """Get the usage of a mounted filesystem.

        Parameters
        ----------
        path
            Mount path of the filesystem.

        Returns
        -------
        int
            Percentage of blocks not available to unprivileged users,
            truncated to an integer between 0 and 100.

        Raises
        ------
        StatError
            Raised if the filesystem cannot be queried.
        """
        try:
            stat = os.statvfs(path)
        except OSError as e:
            raise StatError(path, str(e)) from e
        if stat.f_blocks <= 0:
            raise StatError(path, "filesystem reports no blocks")
        used = stat.f_blocks - stat.f_bavail
        return max(0, used * 100 // stat.f_blocks)

    async def grow(self, device: Path) -> None:
        """Grow the filesystem on a device to fill the device.

        A filesystem that already fills its device is not an error.

        Parameters
        ----------
        device
            Block device holding the filesystem.

        Raises
        ------
        ResizeToolError
            Raised if the resize tool could not be run or failed.
        """
        args = [*self._resize, str(device)]
        self._logger.debug("Growing filesystem", command=args)
        try:
            returncode, stdout, stderr = await self._run(args)
        except OSError as e:
            raise ResizeToolError(device, str(e)) from e
        if returncode != 0:
            output = (stderr or stdout).strip() or None
            msg = f"{args[0]} exited with status {returncode}"
            raise ResizeToolError(device, msg, output)

    async def resolve_device(self, volume: str, mount_path: Path) -> Path:
        """Find the block device mounted at a path.

        Parameters
        ----------
        volume
            Name of the volume, for error reporting.
        mount_path
            Path at which the device is mounted.

        Returns
        -------
        Path
            Path to the device node, which is verified to exist.

        Raises
        ------
        DevicePathError
            Raised if the mount table has no entry for that path or the
            resulting device does not exist.
        """
        args = [*self._findmnt, str(mount_path)]
        try:
            returncode, stdout, stderr = await self._run(args)
        except OSError as e:
            msg = f"Cannot run {args[0]} for {mount_path}: {e!s}"
            raise DevicePathError(msg, volume) from e
        if returncode != 0:
            msg = f"{mount_path} is not a mount point"
            if stderr.strip():
                msg += f": {stderr.strip()}"
            raise DevicePathError(msg, volume)
        source = stdout.strip()
        if not source:
            msg = f"Could not resolve device path for {mount_path}"
            raise DevicePathError(msg, volume)
        device = Path(os.path.normpath(source))
        if not device.exists():
            msg = f"Mount {mount_path} yielded nonexistent device {device}"
            raise DevicePathError(msg, volume)
        return device

    async def _run(self, args: list[str]) -> tuple[int, str, str]:
        """Run a command to completion and capture its output."""
        process = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate()
        returncode = await process.wait()
        return (
            returncode,
            stdout.decode(errors="replace"),
            stderr.decode(errors="replace"),
        )
