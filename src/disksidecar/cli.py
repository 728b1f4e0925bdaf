"""CLI for the disk sidecar."""

from datetime import timedelta
from pathlib import Path

import click
from pydantic import ValidationError
from safir.asyncio import run_with_asyncio
from safir.click import display_help
from safir.datetime import parse_timedelta
from safir.sentry import initialize_sentry, report_exception
from structlog.stdlib import get_logger

from . import __version__
from .config import Config
from .constants import CONFIG_FILE_ENV_VAR, ROOT_LOGGER
from .factory import Factory, build_slack_client

__all__ = ["main", "main_with_sentry"]


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(message="%(version)s")
def main() -> None:
    """Disk sidecar command-line interface."""


@main.command()
@click.argument("topic", default=None, required=False, nargs=1)
@click.argument("subtopic", default=None, required=False, nargs=1)
@click.pass_context
def help(ctx: click.Context, topic: str | None, subtopic: str | None) -> None:
    """Show help for any command."""
    display_help(main, ctx, topic, subtopic)


@main.command()
@click.option(
    "--config-file",
    "-c",
    type=Path,
    envvar=CONFIG_FILE_ENV_VAR,
    default=None,
    help="Application configuration file",
)
@click.option(
    "--container-name", default=None, help="Container mounting the volumes"
)
@click.option("--pod-name", default=None, help="Pod running the sidecar")
@click.option("--namespace", default=None, help="Namespace of the pod")
@click.option(
    "--volumes", default=None, help="Comma-separated volume names to monitor"
)
@click.option(
    "--threshold",
    type=int,
    default=None,
    help="Usage percentage at which to grow volumes",
)
@click.option(
    "--expand-by",
    type=int,
    default=None,
    help="Percentage of the disk size to add on each resize",
)
@click.option(
    "--poll-period",
    type=parse_timedelta,
    default=None,
    help="Time between checks of all volumes",
)
@click.option("--debug", "-d", is_flag=True, help="Enable debug logging")
@run_with_asyncio
async def run(
    *,
    config_file: Path | None,
    container_name: str | None,
    pod_name: str | None,
    namespace: str | None,
    volumes: str | None,
    threshold: int | None,
    expand_by: int | None,
    poll_period: timedelta | None,
    debug: bool,
) -> None:
    """Monitor volumes and grow them as they fill up."""
    try:
        config = Config.load(
            config_file,
            container_name=container_name,
            pod_name=pod_name,
            namespace=namespace,
            volumes=volumes,
            threshold=threshold,
            expand_by=expand_by,
            poll_period=poll_period,
            debug=debug or None,
        )
    except ValidationError as e:
        raise click.UsageError(str(e)) from e

    logger = get_logger(ROOT_LOGGER)
    slack_client = build_slack_client(config, logger)

    try:
        async with Factory.standalone(config) as factory:
            controller = await factory.create_controller()
            await controller.run()
    except Exception as exc:
        await report_exception(exc, slack_client)
        raise


def main_with_sentry() -> None:
    """Call the main command group after initializing Sentry."""
    initialize_sentry(release=__version__)
    main()
