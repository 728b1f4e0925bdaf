"""Application configuration for the disk sidecar."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Self

import yaml
from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import (
    BaseSettings,
    NoDecode,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)
from safir.logging import LogLevel, Profile, configure_logging
from safir.pydantic import HumanTimedelta

from .constants import (
    DEFAULT_EXPAND_BY,
    DEFAULT_OPERATION_POLL_INTERVAL,
    DEFAULT_POLL_PERIOD,
    DEFAULT_SETTLE_DELAY,
    DEFAULT_THRESHOLD,
    ENV_PREFIX,
    ROOT_LOGGER,
)

__all__ = ["Config", "EnvFirstSettings"]


class EnvFirstSettings(BaseSettings):
    """Base class for Pydantic settings with environment overrides.

    Classes that inherit from this base class will prioritize environment
    variables over arguments to the class constructor.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        extra="forbid",
        validate_assignment=True,
        validate_by_name=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Override the sources of settings.

        Deactivate :file:`.env` and secret file support. Allow environment
        variables to override init parameters, since init parameters come
        from the YAML configuration file and we want environment variables
        to take precedent.
        """
        return (env_settings, init_settings)


class Config(EnvFirstSettings):
    """Configuration for the disk sidecar."""

    container_name: Annotated[
        str,
        Field(
            title="Container name",
            description="Container in the pod into which volumes are mounted",
            validation_alias=AliasChoices(
                ENV_PREFIX + "CONTAINER_NAME", "containerName"
            ),
        ),
    ]

    pod_name: Annotated[
        str,
        Field(
            title="Pod name",
            description="Name of the pod in which the sidecar is running",
            validation_alias=AliasChoices(
                ENV_PREFIX + "POD_NAME", "podName"
            ),
        ),
    ]

    namespace: Annotated[
        str,
        Field(
            title="Namespace",
            description="Namespace of the pod",
            validation_alias=AliasChoices(
                ENV_PREFIX + "NAMESPACE", "namespace"
            ),
        ),
    ]

    volumes: Annotated[
        list[str],
        NoDecode,
        Field(
            title="Volumes to monitor",
            description=(
                "Names of pod volumes to monitor. May be given as a"
                " comma-separated string."
            ),
            validation_alias=AliasChoices(ENV_PREFIX + "VOLUMES", "volumes"),
        ),
    ]

    threshold: Annotated[
        int,
        Field(
            title="Usage threshold",
            description=(
                "Percentage of used space at or above which the filesystem"
                " and then the disk are grown"
            ),
            ge=1,
            le=100,
            validation_alias=AliasChoices(
                ENV_PREFIX + "THRESHOLD", "threshold"
            ),
        ),
    ] = DEFAULT_THRESHOLD

    expand_by: Annotated[
        int,
        Field(
            title="Disk growth percentage",
            description="Percentage of the current disk size to add",
            ge=1,
            validation_alias=AliasChoices(
                ENV_PREFIX + "EXPAND_BY", "expandBy"
            ),
        ),
    ] = DEFAULT_EXPAND_BY

    poll_period: Annotated[
        HumanTimedelta,
        Field(
            title="Poll period",
            description="How long to wait between checks of all volumes",
            validation_alias=AliasChoices(
                ENV_PREFIX + "POLL_PERIOD", "pollPeriod"
            ),
        ),
    ] = DEFAULT_POLL_PERIOD

    operation_poll_interval: Annotated[
        HumanTimedelta,
        Field(
            title="Operation poll interval",
            description="How frequently to check a pending disk resize",
            validation_alias=AliasChoices(
                ENV_PREFIX + "OPERATION_POLL_INTERVAL",
                "operationPollInterval",
            ),
        ),
    ] = DEFAULT_OPERATION_POLL_INTERVAL

    operation_timeout: Annotated[
        HumanTimedelta | None,
        Field(
            title="Operation timeout",
            description=(
                "Longest to wait for a disk resize to finish. If not set,"
                " wait until the compute API reports it done."
            ),
            validation_alias=AliasChoices(
                ENV_PREFIX + "OPERATION_TIMEOUT", "operationTimeout"
            ),
        ),
    ] = None

    settle_delay: Annotated[
        HumanTimedelta,
        Field(
            title="Settle delay",
            description=(
                "How long to wait after a disk resize before growing the"
                " filesystem"
            ),
            validation_alias=AliasChoices(
                ENV_PREFIX + "SETTLE_DELAY", "settleDelay"
            ),
        ),
    ] = DEFAULT_SETTLE_DELAY

    project_id: Annotated[
        str | None,
        Field(
            title="GCP project ID",
            description=(
                "Project containing the persistent disks. If not set, taken"
                " from the provider ID of the node running the pod."
            ),
            validation_alias=AliasChoices(
                ENV_PREFIX + "PROJECT_ID", "projectId"
            ),
        ),
    ] = None

    debug: Annotated[
        bool,
        Field(
            title="Show debug output and log style",
            description=(
                "If True, then log level will be set to debug and will use"
                " non-structured, human-readable output."
            ),
            validation_alias=AliasChoices(ENV_PREFIX + "DEBUG", "debug"),
        ),
    ] = False

    log_profile: Annotated[
        Profile,
        Field(
            title="Logging profile",
            validation_alias=AliasChoices(
                ENV_PREFIX + "LOG_PROFILE", "logProfile"
            ),
        ),
    ] = Profile.production

    log_level: Annotated[
        LogLevel,
        Field(
            title="Log level",
            validation_alias=AliasChoices(
                ENV_PREFIX + "LOG_LEVEL", "logLevel"
            ),
        ),
    ] = LogLevel.INFO

    add_timestamp: Annotated[
        bool,
        Field(
            title="Add timestamp to log lines",
            validation_alias=AliasChoices(
                ENV_PREFIX + "ADD_TIMESTAMP", "addTimestamp"
            ),
        ),
    ] = False

    alert_hook: Annotated[
        SecretStr | None,
        Field(
            title="Slack webhook URL used for sending alerts",
            description=(
                "An https URL, which should be considered secret."
                " If not set or set to `None`, this feature will be disabled."
            ),
            validation_alias=AliasChoices(
                ENV_PREFIX + "ALERT_HOOK", "alertHook"
            ),
        ),
    ] = None

    @field_validator("volumes", mode="before")
    @classmethod
    def _split_volumes(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = [n.strip() for n in v.split(",")]
        if isinstance(v, list):
            v = [n for n in v if n]
            if not v:
                raise ValueError("At least one volume must be given")
        return v

    @classmethod
    def load(cls, path: Path | None = None, **overrides: Any) -> Self:
        """Construct the configuration.

        Settings come from, in increasing order of precedence, the YAML
        configuration file, environment variables, and the provided
        overrides.

        Parameters
        ----------
        path
            Path to the configuration file in YAML, if any.
        **overrides
            Settings to force, by field name, generally from command-line
            options. Overrides whose value is `None` are ignored.

        Returns
        -------
        Config
            The corresponding configuration.

        Raises
        ------
        pydantic.ValidationError
            Raised if the resulting configuration is invalid.
        """
        data: dict[str, Any] = {}
        if path:
            with path.open("r") as f:
                data = yaml.safe_load(f) or {}
        overrides = {k: v for k, v in overrides.items() if v is not None}
        for key in overrides:
            alias = cls.model_fields[key].validation_alias
            if isinstance(alias, AliasChoices):
                for choice in alias.choices:
                    if isinstance(choice, str):
                        data.pop(choice, None)
        config = cls(**{**data, **overrides})

        # Environment variables take precedence over constructor arguments,
        # so apply command-line settings again to win over them.
        for key, value in overrides.items():
            setattr(config, key, value)
        config.configure_logging()
        return config

    def configure_logging(self) -> None:
        """Configure logging based on the sidecar configuration."""
        if self.debug:
            log_level = LogLevel.DEBUG
            log_profile = Profile.development
        else:
            log_level = self.log_level
            log_profile = self.log_profile

        configure_logging(
            profile=log_profile,
            log_level=log_level,
            add_timestamp=self.add_timestamp,
            name=ROOT_LOGGER,
        )
