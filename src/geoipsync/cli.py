"""Command-line interface for geoipsync."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from geoipsync import __version__
from geoipsync.config import Config
from geoipsync.errors import (
    CacheDirectoryError,
    ConfigError,
    DownloadError,
    GeoIPSyncError,
    LockError,
)
from geoipsync.updater import Updater

if TYPE_CHECKING:
    from geoipsync.models import RefreshResult

logger = logging.getLogger(__name__)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config-file",
    "-f",
    type=click.Path(exists=True, path_type=Path),
    envvar="GEOIPSYNC_CONF_FILE",
    help="Configuration file.",
)
@click.option(
    "--database-directory",
    "-d",
    type=click.Path(path_type=Path),
    help="Store the database in this directory (uses config if not specified).",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Use verbose output.",
)
@click.option(
    "--once",
    is_flag=True,
    help="Run a single refresh and exit instead of refreshing periodically.",
)
@click.option(
    "--output",
    "-o",
    is_flag=True,
    help="With --once, output the refresh result in JSON format.",
)
@click.version_option(__version__, "-V", "--version", prog_name="geoipsync")
def main(
    config_file: Path | None,
    database_directory: Path | None,
    verbose: bool,
    once: bool,
    output: bool,
) -> None:
    """Keep a local GeoIP database in sync with a remote copy.

    Loads the cached database, then periodically compares its SHA-256 with
    the digest published next to the remote file and downloads the file
    only when they differ. Configuration can be provided via a configuration
    file, environment variables, or command-line options.

    Example usage:

        # Refresh every 24 hours using a configuration file
        geoipsync -f /etc/geoipsync.conf

        # Using environment variables
        export GEOIPSYNC_DB_URL=https://example.com/GeoLite2-City.mmdb
        export GEOIPSYNC_DIGEST_URL=https://example.com/GeoLite2-City.sha256
        geoipsync

        # Refresh once with JSON results
        geoipsync --once -o
    """
    if output and not once:
        raise click.UsageError("--output requires --once.")

    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
    )

    try:
        config = Config.from_file(
            config_file=config_file,
            database_directory=database_directory,
            verbose=verbose,
        )
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)

    if verbose:
        logger.info("geoipsync version %s", __version__)
        if config_file:
            logger.info("Using config file %s", config_file)

    try:
        result = asyncio.run(_run(config, once=once))
    except CacheDirectoryError as e:
        click.echo(f"Cache directory error: {e}", err=True)
        sys.exit(1)
    except LockError as e:
        click.echo(f"Lock error: {e}", err=True)
        sys.exit(1)
    except DownloadError as e:
        click.echo(f"Download error: {e}", err=True)
        sys.exit(1)
    except GeoIPSyncError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except OSError as e:
        click.echo(f"File operation error: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nInterrupted.", err=True)
        sys.exit(130)

    if result is None:
        return
    if result.was_updated and not result.published:
        click.echo("Error: downloaded database could not be loaded", err=True)
        sys.exit(1)
    if output:
        print(json.dumps(result.to_dict()))  # noqa: T201


async def _run(config: Config, *, once: bool) -> RefreshResult | None:
    """Run the updater with the given configuration.

    Args:
        config: The configuration to use.
        once: Run a single refresh instead of refreshing periodically.

    Returns:
        The refresh result when ``once`` is set.

    """
    async with Updater(config) as updater:
        if not once:
            await updater.run_forever()
            return None

        await updater.initialize()
        return await updater.refresh()


if __name__ == "__main__":
    main()
