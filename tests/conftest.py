"""Test fixtures for disk sidecar tests."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator
from datetime import timedelta
from pathlib import Path

import pytest
import pytest_asyncio
import respx
from pydantic import SecretStr
from safir.testing.slack import MockSlackWebhook, mock_slack_webhook

from disksidecar.config import Config
from disksidecar.factory import Factory

from .support.compute import MockComputeApi, patch_compute
from .support.constants import TEST_CONTAINER, TEST_NAMESPACE, TEST_POD
from .support.filesystem import MockFilesystem
from .support.kubernetes import MockSidecarKubernetesApi, patch_kubernetes


@pytest.fixture
def config() -> Config:
    """Construct default configuration for tests."""
    return Config(
        container_name=TEST_CONTAINER,
        pod_name=TEST_POD,
        namespace=TEST_NAMESPACE,
        volumes=["home", "scratch"],
        poll_period=timedelta(seconds=0),
        operation_poll_interval=timedelta(seconds=0),
        settle_delay=timedelta(seconds=0),
    )


@pytest_asyncio.fixture
async def factory(
    config: Config,
    mock_kubernetes: MockSidecarKubernetesApi,
    mock_compute: MockComputeApi,
) -> AsyncIterator[Factory]:
    """Create a component factory for tests."""
    async with Factory.standalone(config) as factory:
        yield factory


@pytest.fixture
def mock_compute() -> Iterator[MockComputeApi]:
    yield from patch_compute()


@pytest.fixture
def mock_filesystem(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> MockFilesystem:
    return MockFilesystem(tmp_path, monkeypatch)


@pytest.fixture
def mock_kubernetes() -> Iterator[MockSidecarKubernetesApi]:
    yield from patch_kubernetes()


@pytest.fixture
def mock_slack(
    config: Config, respx_mock: respx.Router
) -> Iterator[MockSlackWebhook]:
    config.alert_hook = SecretStr("https://slack.example.com/webhook")
    yield mock_slack_webhook(config.alert_hook, respx_mock)
    config.alert_hook = None
