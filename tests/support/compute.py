"""Mock out the Google Compute Engine disk API for tests."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any
from unittest.mock import Mock, patch

from google.api_core.exceptions import GoogleAPICallError, NotFound
from google.cloud import compute_v1

__all__ = [
    "MockComputeApi",
    "MockDisksClient",
    "MockZoneOperationsClient",
    "patch_compute",
]


@dataclass
class _PendingOperation:
    """Resize operation that has not yet been reported done."""

    zone: str
    disk: str
    size: int
    polls_left: int
    polls: int = 0


@dataclass
class MockComputeApi:
    """State shared between the mock compute clients.

    Attributes
    ----------
    polls_before_done
        Number of status requests needed before an operation is reported
        done. Earlier requests report it running.
    operation_errors
        Errors, as pairs of code and message, reported by every finished
        operation.
    request_error
        If set, raised by every request to the compute API.
    invalid_operation
        If set, resize requests return an operation with no name.
    invalid_poll
        If set, operation status requests return an operation with no name.
    poll_error
        If set, raised by every operation status request.
    """

    polls_before_done: int = 0
    operation_errors: list[tuple[str, str]] = field(default_factory=list)
    request_error: GoogleAPICallError | None = None
    invalid_operation: bool = False
    invalid_poll: bool = False
    poll_error: GoogleAPICallError | None = None
    disks: dict[tuple[str, str], int] = field(default_factory=dict)
    operations: dict[str, _PendingOperation] = field(default_factory=dict)
    resize_requests: list[tuple[str, str, int]] = field(default_factory=list)

    def add_disk_for_test(self, zone: str, name: str, size_gb: int) -> None:
        """Add a persistent disk.

        Parameters
        ----------
        zone
            Zone of the disk.
        name
            Name of the disk.
        size_gb
            Initial size of the disk in GB.
        """
        self.disks[(zone, name)] = size_gb

    def get_disk_size(self, zone: str, name: str) -> int:
        """Get the current size of a disk."""
        return self.disks[(zone, name)]

    def build_operation(self, name: str) -> compute_v1.Operation:
        pending = self.operations[name]
        if pending.polls_left > 0:
            status = compute_v1.Operation.Status.RUNNING
        else:
            status = compute_v1.Operation.Status.DONE
            if not self.operation_errors:
                self.disks[(pending.zone, pending.disk)] = pending.size
        errors = [
            compute_v1.Errors(code=c, message=m)
            for c, m in self.operation_errors
        ]
        operation = compute_v1.Operation(
            name=name, status=status, zone=pending.zone
        )
        if errors:
            operation.error = compute_v1.Error(errors=errors)
        return operation


class MockDisksClient(Mock):
    """Mock of `google.cloud.compute_v1.DisksClient`."""

    def __init__(self, state: MockComputeApi) -> None:
        super().__init__(spec=compute_v1.DisksClient)
        self._state = state

    def get(self, *, project: str, zone: str, disk: str) -> compute_v1.Disk:
        if self._state.request_error:
            raise self._state.request_error
        if (zone, disk) not in self._state.disks:
            raise NotFound(f"Disk {disk} not found in {project}/{zone}")
        size = self._state.disks[(zone, disk)]
        return compute_v1.Disk(name=disk, size_gb=size, zone=zone)

    def resize_unary(
        self,
        *,
        project: str,
        zone: str,
        disk: str,
        disks_resize_request_resource: compute_v1.DisksResizeRequest,
    ) -> compute_v1.Operation:
        if self._state.request_error:
            raise self._state.request_error
        size = disks_resize_request_resource.size_gb
        self._state.resize_requests.append((zone, disk, size))
        if self._state.invalid_operation:
            return compute_v1.Operation()
        name = f"operation-{len(self._state.resize_requests)}"
        self._state.operations[name] = _PendingOperation(
            zone=zone,
            disk=disk,
            size=size,
            polls_left=self._state.polls_before_done,
        )
        return compute_v1.Operation(
            name=name, status=compute_v1.Operation.Status.PENDING, zone=zone
        )

    def _get_child_mock(self, /, **kwargs: Any) -> Mock:
        return Mock(**kwargs)


class MockZoneOperationsClient(Mock):
    """Mock of `google.cloud.compute_v1.ZoneOperationsClient`."""

    def __init__(self, state: MockComputeApi) -> None:
        super().__init__(spec=compute_v1.ZoneOperationsClient)
        self._state = state

    def get(
        self, *, project: str, zone: str, operation: str
    ) -> compute_v1.Operation:
        if self._state.request_error:
            raise self._state.request_error
        if self._state.poll_error:
            raise self._state.poll_error
        if operation not in self._state.operations:
            raise NotFound(f"Operation {operation} not found")
        pending = self._state.operations[operation]
        pending.polls += 1
        pending.polls_left -= 1
        if self._state.invalid_poll:
            return compute_v1.Operation()
        return self._state.build_operation(operation)

    def _get_child_mock(self, /, **kwargs: Any) -> Mock:
        return Mock(**kwargs)


def patch_compute() -> Iterator[MockComputeApi]:
    """Replace the GCE compute clients with mock classes.

    Returns
    -------
    MockComputeApi
        State shared by the mock clients.
    """
    state = MockComputeApi()
    disks = MockDisksClient(state)
    operations = MockZoneOperationsClient(state)
    with patch.object(compute_v1, "DisksClient") as mock_disks:
        mock_disks.return_value = disks
        with patch.object(compute_v1, "ZoneOperationsClient") as mock_ops:
            mock_ops.return_value = operations
            yield state
