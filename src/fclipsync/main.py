"""CLI handling for fclipsync.

This module provides the command-line interface for fclipsync, handling
argument parsing via click, logging configuration, persisting settings and
starting the agent.

Usage:
    fclipsync [--folder PATH] [--native-watch | --polling] [--set KEY=VALUE]...
              [--change-folder] [--config PATH] [--log-file PATH] [--verbose]
"""

import sys
from pathlib import Path

import click

from fclipsync.config import ConfigError, ConfigStore
from fclipsync.main_logging import configure_logging
from fclipsync.main_options import MutuallyExclusiveOption, parse_settings


@click.command()
@click.option(
    "--folder",
    type=click.Path(file_okay=False),
    help="Shared folder to sync the clipboard through (saved in the config)",
)
@click.option(
    "--native-watch",
    is_flag=True,
    cls=MutuallyExclusiveOption,
    not_required_if=["polling"],
    help="Watch the folder with native file notifications",
)
@click.option(
    "--polling",
    is_flag=True,
    cls=MutuallyExclusiveOption,
    not_required_if=["native_watch"],
    help="Watch the folder by polling, for mounts without notifications",
)
@click.option(
    "--set",
    "settings",
    multiple=True,
    metavar="KEY=VALUE",
    callback=parse_settings,
    help="Change a setting, e.g. --set send_files=false (repeatable)",
)
@click.option(
    "--change-folder",
    is_flag=True,
    help="Ask for a new sync folder",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    help="Config file to use instead of the per-user default",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    help="Also write INFO-level logs to this file",
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Enable DEBUG-level logging",
)
def main(
    folder: str | None,
    native_watch: bool,
    polling: bool,
    settings: list[tuple[str, object]],
    change_folder: bool,
    config_path: str | None,
    log_file: str | None,
    verbose: bool,
) -> None:
    """Synchronize the clipboard between computers through a shared folder."""
    configure_logging(verbose, log_file)

    store = ConfigStore(Path(config_path) if config_path else None)
    try:
        for key, value in settings:
            store.set(key, value)
        if native_watch:
            store.set("watch_mode", "native")
        elif polling:
            store.set("watch_mode", "polling")
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if folder:
        store.set("folder", str(Path(folder).expanduser().absolute()))
    elif change_folder or not store.config.folder:
        _prompt_for_folder(store)

    _run_agent(store)


def _prompt_for_folder(store: ConfigStore) -> None:
    """Ask for the sync folder, exiting with status 1 if none is given.

    Args:
        store: The config store the answer is saved to.
    """
    try:
        answer = click.prompt(
            "Folder to sync the clipboard through",
            default=store.config.folder or "",
            show_default=bool(store.config.folder),
        )
    except click.Abort:
        answer = ""
    if not answer.strip():
        click.echo("Error: A sync folder is required.", err=True)
        sys.exit(1)
    store.set("folder", str(Path(answer.strip()).expanduser().absolute()))


def _run_agent(store: ConfigStore) -> None:
    """Run the agent until interrupted.

    Args:
        store: The loaded configuration.
    """
    import asyncio
    from fclipsync.runner import run_agent

    asyncio.run(run_agent(store))
