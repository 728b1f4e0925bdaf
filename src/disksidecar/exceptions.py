"""Exceptions for the disk sidecar."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Self, override

from google.api_core.exceptions import GoogleAPICallError, GoogleAPIError
from kubernetes_asyncio.client import ApiException
from safir.datetime import format_datetime_for_logging
from safir.slack.blockkit import (
    SlackBaseField,
    SlackCodeBlock,
    SlackException,
    SlackMessage,
    SlackTextBlock,
    SlackTextField,
)
from safir.slack.sentry import SentryEventInfo

__all__ = [
    "DevicePathError",
    "InvalidProviderError",
    "InvalidVolumeError",
    "KubernetesError",
    "MissingObjectError",
    "NotDeclaredError",
    "NotMountedError",
    "OperationTimeoutError",
    "PressureNotRelievedError",
    "ProviderOperationError",
    "ProviderProtocolError",
    "ProviderRequestError",
    "ResizeToolError",
    "ResolutionError",
    "StatError",
    "UnboundVolumeError",
]


class KubernetesError(SlackException):
    """An API call to Kubernetes failed.

    Parameters
    ----------
    message
        Summary of error.
    namespace
        Namespace of object being acted on.
    name
        Name of object being acted on.
    kind
        Kind of object being acted on.
    status
        Status code of failure, if any.
    body
        Body of failure message, if any.
    """

    @classmethod
    def from_exception(
        cls,
        message: str,
        exc: ApiException,
        *,
        kind: str | None = None,
        namespace: str | None = None,
        name: str | None = None,
    ) -> Self:
        """Create an exception from a Kubernetes API exception.

        Parameters
        ----------
        message
            Brief explanation of what was being attempted.
        exc
            Kubernetes API exception.
        kind
            Kind of object being acted on.
        namespace
            Namespace of object being acted on.
        name
            Name of object being acted on.

        Returns
        -------
        KubernetesError
            Newly-created exception.
        """
        return cls(
            message,
            kind=kind,
            namespace=namespace,
            name=name,
            status=exc.status,
            body=exc.body if exc.body else exc.reason,
        )

    def __init__(
        self,
        message: str,
        *,
        kind: str | None = None,
        namespace: str | None = None,
        name: str | None = None,
        status: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.namespace = namespace
        self.name = name
        self.status = status
        self.body = body

    @override
    def __str__(self) -> str:
        result = self._summary()
        if self.body:
            result += f": {self.body}"
        return result

    @override
    def to_slack(self) -> SlackMessage:
        """Convert to a Slack message for Slack alerting.

        Returns
        -------
        safir.slack.blockkit.SlackMessage
            Slack message suitable for posting as an alert.
        """
        message = super().to_slack()
        message.message = self._summary()
        if self.status:
            field = SlackTextField(heading="Status", text=str(self.status))
            message.fields.append(field)
        if self.name:
            obj = _describe_object(self.kind, self.namespace, self.name)
            message.blocks.append(SlackTextBlock(heading="Object", text=obj))
        if self.body:
            code = SlackCodeBlock(heading="Error", code=self.body)
            message.blocks.append(code)
        return message

    @override
    def to_sentry(self) -> SentryEventInfo:
        """Return a collection of Sentry event metadata about the exception.

        Returns
        -------
        safir.slack.sentry.SentryEventInfo
            Sentry event metadata for use with \
            `~safir.sentry.before_send_handler`
        """
        info = super().to_sentry()
        if self.status:
            info.tags["status"] = str(self.status)
        if self.name:
            info.tags["name"] = self.name
        if self.kind:
            info.tags["kind"] = self.kind
        if self.namespace:
            info.tags["namespace"] = self.namespace
        if self.body:
            info.attachments["body"] = self.body
        return info

    def _summary(self) -> str:
        """Summarize the exception in a single line."""
        result = self.message
        details = []
        if self.name:
            details.append(
                _describe_object(self.kind, self.namespace, self.name)
            )
        elif self.kind:
            details.append(self.kind)
        if self.status:
            details.append(f"status {self.status}")
        if details:
            result += " (" + ", ".join(details) + ")"
        return result


class MissingObjectError(SlackException):
    """An expected Kubernetes object is missing.

    Parameters
    ----------
    message
        Summary of error.
    kind
        Kind of Kubernetes object that is missing.
    namespace
        Namespace of object being acted on.
    name
        Name of object being acted on.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: str,
        namespace: str | None = None,
        name: str | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.namespace = namespace
        self.name = name

    @override
    def to_slack(self) -> SlackMessage:
        message = super().to_slack()
        obj = _describe_object(self.kind, self.namespace, self.name)
        message.blocks.append(SlackTextBlock(heading="Object", text=obj))
        return message

    @override
    def to_sentry(self) -> SentryEventInfo:
        info = super().to_sentry()
        info.tags["kind"] = self.kind
        if self.name:
            info.tags["name"] = self.name
        if self.namespace:
            info.tags["namespace"] = self.namespace
        return info


class InvalidProviderError(SlackException):
    """The pod is not running on a GCE node."""


class ResolutionError(SlackException):
    """A requested volume cannot be monitored.

    All subclasses are fatal during startup.

    Parameters
    ----------
    message
        Summary of error.
    volume
        Name of the volume that could not be resolved.
    """

    def __init__(self, message: str, volume: str) -> None:
        super().__init__(message)
        self.volume = volume

    @override
    def to_slack(self) -> SlackMessage:
        message = super().to_slack()
        field = SlackTextField(heading="Volume", text=self.volume)
        message.fields.append(field)
        return message

    @override
    def to_sentry(self) -> SentryEventInfo:
        info = super().to_sentry()
        info.tags["volume"] = self.volume
        return info


class NotDeclaredError(ResolutionError):
    """The volume is not declared in the pod specification."""


class NotMountedError(ResolutionError):
    """The volume is not mounted into the target container."""


class InvalidVolumeError(ResolutionError):
    """The volume is bound in a way that cannot be safely grown."""


class UnboundVolumeError(ResolutionError):
    """The claim or persistent volume is not in the ``Bound`` phase."""


class DevicePathError(ResolutionError):
    """The mount path could not be resolved to an existing device node."""


class StatError(SlackException):
    """Filesystem statistics for a mount path could not be retrieved.

    Parameters
    ----------
    path
        Mount path that was queried.
    error
        Underlying error message.
    """

    def __init__(self, path: Path, error: str) -> None:
        super().__init__(f"Cannot get filesystem usage of {path}: {error}")
        self.path = path


class ResizeToolError(SlackException):
    """The filesystem resize tool failed.

    Parameters
    ----------
    device
        Device whose filesystem was being grown.
    message
        Summary of the failure.
    output
        Output of the tool, if any.
    """

    def __init__(
        self, device: Path, message: str, output: str | None = None
    ) -> None:
        msg = f"Cannot grow filesystem on {device}: {message}"
        super().__init__(msg)
        self.message = msg
        self.device = device
        self.output = output

    @override
    def __str__(self) -> str:
        result = super().__str__()
        if self.output:
            result += f"\n{self.output}"
        return result

    @override
    def to_slack(self) -> SlackMessage:
        message = super().to_slack()
        message.message = self.message
        if self.output:
            block = SlackCodeBlock(heading="Output", code=self.output)
            message.blocks.append(block)
        return message


class ProviderRequestError(SlackException):
    """A request to the GCE compute API failed.

    Parameters
    ----------
    message
        Summary of error.
    disk
        Name of the persistent disk being acted on.
    zone
        Zone of the persistent disk.
    code
        HTTP status code of the failure, if any.
    error
        Error reported by the API.
    """

    @classmethod
    def from_exception(
        cls, message: str, exc: GoogleAPIError, *, disk: str, zone: str
    ) -> Self:
        """Create an exception from a Google API exception.

        Parameters
        ----------
        message
            Brief explanation of what was being attempted.
        exc
            Google API client exception.
        disk
            Name of the persistent disk being acted on.
        zone
            Zone of the persistent disk.

        Returns
        -------
        ProviderRequestError
            Newly-created exception.
        """
        code = None
        if isinstance(exc, GoogleAPICallError) and exc.code:
            code = int(exc.code)
        error = f"{type(exc).__name__}: {exc!s}"
        return cls(message, disk=disk, zone=zone, code=code, error=error)

    def __init__(
        self,
        message: str,
        *,
        disk: str,
        zone: str,
        code: int | None = None,
        error: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.disk = disk
        self.zone = zone
        self.code = code
        self.error = error

    @override
    def __str__(self) -> str:
        result = f"{self.message} (disk {self.zone}/{self.disk}"
        if self.code:
            result += f", status {self.code}"
        result += ")"
        if self.error:
            result += f": {self.error}"
        return result

    @override
    def to_slack(self) -> SlackMessage:
        message = super().to_slack()
        message.message = self.message
        disk = f"{self.zone}/{self.disk}"
        message.fields.append(SlackTextField(heading="Disk", text=disk))
        if self.error:
            block = SlackCodeBlock(heading="Error", code=self.error)
            message.blocks.append(block)
        return message

    @override
    def to_sentry(self) -> SentryEventInfo:
        info = super().to_sentry()
        info.tags["disk"] = self.disk
        info.tags["zone"] = self.zone
        if self.code:
            info.tags["status"] = str(self.code)
        return info


class ProviderProtocolError(SlackException):
    """The GCE compute API returned no usable operation."""


class ProviderOperationError(SlackException):
    """A disk resize operation completed with errors.

    Parameters
    ----------
    errors
        Messages of all errors reported by the operation, in order.
    """

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors = list(errors)
        message = "Disk resize operation failed: " + "; ".join(self.errors)
        super().__init__(message)

    @override
    def to_slack(self) -> SlackMessage:
        message = super().to_slack()
        message.message = "Disk resize operation failed"
        text = "\n".join(self.errors)
        message.blocks.append(SlackTextBlock(heading="Errors", text=text))
        return message


class OperationTimeoutError(SlackException):
    """A disk resize operation did not finish in the allowed time.

    Parameters
    ----------
    operation
        Name of the provider operation.
    started_at
        When the resize was submitted.
    failed_at
        When waiting was abandoned.
    """

    def __init__(
        self, operation: str, *, started_at: datetime, failed_at: datetime
    ) -> None:
        self.operation = operation
        self.started_at = started_at
        elapsed = failed_at - started_at
        msg = (
            f"Operation {operation} not done after"
            f" {elapsed.total_seconds()}s"
        )
        super().__init__(msg, failed_at=failed_at)

    @override
    def to_slack(self) -> SlackMessage:
        started_at = format_datetime_for_logging(self.started_at)
        failed_at = format_datetime_for_logging(self.failed_at)
        fields: list[SlackBaseField] = [
            SlackTextField(heading="Started at", text=started_at),
            SlackTextField(heading="Failed at", text=failed_at),
            SlackTextField(heading="Operation", text=self.operation),
        ]
        return SlackMessage(message=str(self), fields=fields)


class PressureNotRelievedError(SlackException):
    """Usage is still over the threshold after a full escalation.

    Parameters
    ----------
    volume
        Name of the volume.
    usage
        Usage percentage after the last filesystem grow.
    threshold
        Configured usage threshold.
    """

    def __init__(self, volume: str, usage: int, threshold: int) -> None:
        msg = (
            f"Failed to relieve pressure on volume {volume}: usage {usage}%"
            f" still at or above threshold {threshold}%"
        )
        super().__init__(msg)
        self.volume = volume
        self.usage = usage
        self.threshold = threshold


def _describe_object(
    kind: str | None, namespace: str | None, name: str | None
) -> str:
    """Format a Kubernetes object reference for messages."""
    prefix = f"{kind} " if kind else ""
    if name and namespace:
        return f"{prefix}{namespace}/{name}"
    if name:
        return f"{prefix}{name}"
    if namespace:
        return f"{prefix}(namespace: {namespace})".strip()
    return prefix.strip()
