"""Relieve storage pressure on monitored volumes."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import sentry_sdk
from safir.slack.blockkit import SlackException
from safir.slack.webhook import SlackWebhookClient
from structlog.stdlib import BoundLogger

from ..exceptions import PressureNotRelievedError
from ..models.volume import EscalationResult, MountedVolume
from ..storage.filesystem import FilesystemStorage
from .resizer import DiskResizer

__all__ = ["EscalationController"]


class EscalationController:
    """Watch volume usage and grow filesystems and disks as needed.

    On every tick, each volume goes through the same escalation: measure
    usage, grow the filesystem to fill its device, grow the persistent disk
    and then the filesystem again. Escalation stops as soon as usage drops
    under the threshold. Volumes are handled one at a time, in order, and a
    failure for one volume never affects the others.

    Parameters
    ----------
    volumes
        Volumes to monitor.
    filesystem
        Host filesystem operations.
    resizer
        Resizer for the persistent disks.
    threshold
        Usage percentage at or above which to relieve pressure.
    expand_by
        Percentage of the current size to add when growing a disk.
    poll_period
        How long to wait between passes over all volumes.
    settle_delay
        How long to wait after growing a disk before growing its filesystem.
    slack_client
        If provided, client used to post failures to Slack.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        volumes: list[MountedVolume],
        filesystem: FilesystemStorage,
        resizer: DiskResizer,
        threshold: int,
        expand_by: int,
        poll_period: timedelta,
        settle_delay: timedelta,
        slack_client: SlackWebhookClient | None = None,
        logger: BoundLogger,
    ) -> None:
        self._volumes = tuple(volumes)
        self._filesystem = filesystem
        self._resizer = resizer
        self._threshold = threshold
        self._expand_by = expand_by
        self._poll_period = poll_period
        self._settle_delay = settle_delay
        self._slack = slack_client
        self._logger = logger

    @property
    def volumes(self) -> tuple[MountedVolume, ...]:
        """Volumes being monitored."""
        return self._volumes

    async def check(self, volume: MountedVolume) -> EscalationResult:
        """Check one volume and relieve pressure if needed.

        Parameters
        ----------
        volume
            Volume to check.

        Returns
        -------
        EscalationResult
            How pressure was relieved, if there was any.

        Raises
        ------
        PressureNotRelievedError
            Raised if the volume is still over the threshold after growing
            both the disk and the filesystem.
        ProviderOperationError
            Raised if the disk resize finished with errors.
        ProviderProtocolError
            Raised if the compute API returned no usable operation.
        ProviderRequestError
            Raised if a request to the compute API failed.
        ResizeToolError
            Raised if the filesystem could not be grown.
        StatError
            Raised if the filesystem usage could not be read.
        """
        logger = self._logger.bind(
            volume=volume.name, threshold=self._threshold
        )
        usage = self._filesystem.get_usage(volume.mounted_path)
        if usage < self._threshold:
            logger.debug("Volume usage under threshold", usage=usage)
            return EscalationResult.NO_ACTION

        logger.info("Volume over threshold, growing filesystem", usage=usage)
        await self._filesystem.grow(volume.device_path)
        usage = self._filesystem.get_usage(volume.mounted_path)
        if usage < self._threshold:
            logger.info("Pressure relieved by filesystem grow", usage=usage)
            return EscalationResult.RELIEVED_BY_FILESYSTEM

        logger.info(
            "Volume still over threshold, growing disk",
            usage=usage,
            disk=volume.disk_name,
            expand_by=self._expand_by,
        )
        await self._resizer.resize(volume, self._expand_by)
        await asyncio.sleep(self._settle_delay.total_seconds())
        await self._filesystem.grow(volume.device_path)
        usage = self._filesystem.get_usage(volume.mounted_path)
        if usage < self._threshold:
            logger.info("Pressure relieved by disk resize", usage=usage)
            return EscalationResult.RELIEVED_BY_DISK
        raise PressureNotRelievedError(volume.name, usage, self._threshold)

    async def run_once(self) -> dict[str, EscalationResult]:
        """Check every volume once.

        Errors are logged and reported, and do not stop the remaining
        volumes from being checked.

        Returns
        -------
        dict of EscalationResult
            Result for each volume, keyed by volume name.
        """
        results: dict[str, EscalationResult] = {}
        for volume in self._volumes:
            try:
                result = await self.check(volume)
            except PressureNotRelievedError as e:
                self._logger.warning(str(e), volume=volume.name)
                await self._maybe_post_exception(e)
                result = EscalationResult.EXHAUSTED
            except SlackException as e:
                self._logger.error(
                    "Failed to relieve pressure",
                    volume=volume.name,
                    error=str(e),
                )
                await self._maybe_post_exception(e)
                result = EscalationResult.FAILED
            except Exception as e:
                self._logger.exception(
                    "Unexpected error checking volume", volume=volume.name
                )
                await self._maybe_post_exception(e)
                result = EscalationResult.FAILED
            results[volume.name] = result
        return results

    async def run(self) -> None:
        """Check all volumes forever, pausing between each pass."""
        self._logger.info(
            "Monitoring volumes",
            volumes=[v.name for v in self._volumes],
            threshold=self._threshold,
            expand_by=self._expand_by,
        )
        while True:
            await self.run_once()
            await asyncio.sleep(self._poll_period.total_seconds())

    async def _maybe_post_exception(self, exc: Exception) -> None:
        """Post an exception to Sentry and, if configured, Slack.

        Parameters
        ----------
        exc
            Exception to report.
        """
        sentry_sdk.capture_exception(exc)
        if not self._slack:
            return
        if isinstance(exc, SlackException):
            await self._slack.post_exception(exc)
        else:
            await self._slack.post_uncaught_exception(exc)
