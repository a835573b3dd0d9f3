"""Main Typer application — imports and registers all CLI commands.

Entry point: ``rtmkit`` (configured via pyproject.toml project.scripts).
"""

from __future__ import annotations

import logging

import typer

from rtmkit.cli.commands.kinds import kinds_cmd
from rtmkit.cli.commands.replay import replay_cmd
from rtmkit.config import config

app = typer.Typer(
    name="rtmkit",
    help="rtmkit: typed event ingestion for real-time messaging streams.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        config.log_level,
        "--log-level",
        help="Logging level for rtmkit diagnostics.",
    ),
) -> None:
    """Configure logging before any command runs."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Register subcommands
app.command(name="replay", help="Replay captured RTM frames and show the decoded events.")(replay_cmd)
app.command(name="kinds", help="List the registered event kinds.")(kinds_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
