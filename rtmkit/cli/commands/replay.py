"""``rtmkit replay FILE`` — push a capture of RTM frames through a session.

The capture is a JSON-lines file, one raw frame per line, in the order
the transport received them.  Blank lines are ignored.  Every frame goes
through the real decode -> dispatch -> stream path and the resulting
events are printed in delivery order.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from rtmkit.config import StreamConfig, config
from rtmkit.models.events import (
    ChannelJoinedEvent,
    MessageEvent,
    PresenceChangeEvent,
    ReactionAddedEvent,
    ReactionRemovedEvent,
    RTMEvent,
    UnknownEvent,
)
from rtmkit.models.stream import BackpressurePolicy, MalformedFramePolicy
from rtmkit.session import RTMSession

console = Console()


def _read_frames(path: Path) -> list[str]:
    lines = path.read_text(encoding="utf-8").splitlines()
    return [line for line in lines if line.strip()]


async def _collect(session: RTMSession) -> list[RTMEvent]:
    events: list[RTMEvent] = []
    async with session:
        async for event in session:
            events.append(event)
    return events


def _channel(event: RTMEvent) -> str:
    channel = getattr(event, "channel", "")
    if isinstance(channel, str):
        return channel
    return channel.id


def _detail(event: RTMEvent) -> str:
    if isinstance(event, UnknownEvent):
        detail = f"{event.discriminant} ({event.reason.value})"
        if event.error:
            detail += f": {event.error.splitlines()[0]}"
        return detail
    if isinstance(event, MessageEvent):
        return event.subtype or ""
    if isinstance(event, PresenceChangeEvent):
        return event.presence.value
    if isinstance(event, (ReactionAddedEvent, ReactionRemovedEvent)):
        return f":{event.reaction}: on {event.item.type} {event.item.ts}".rstrip()
    if isinstance(event, ChannelJoinedEvent):
        return event.channel.name
    return ""


def replay_cmd(
    frames_file: Path = typer.Argument(
        ...,
        help="JSON-lines file with one raw RTM frame per line.",
    ),
    capacity: int = typer.Option(
        config.buffer_capacity,
        "--capacity",
        "-c",
        min=1,
        help="Event stream buffer capacity.",
    ),
    policy: BackpressurePolicy = typer.Option(
        config.backpressure_policy,
        "--policy",
        "-p",
        help="Backpressure policy when the buffer is full.",
    ),
    strict: bool = typer.Option(
        False,
        "--strict",
        help="Stop at the first malformed frame instead of skipping it.",
    ),
) -> None:
    """Replay captured RTM frames and show the decoded events."""
    if not frames_file.exists():
        console.print(
            f"[bold red]Capture not found:[/bold red] {escape(str(frames_file))}"
        )
        raise typer.Exit(code=1)

    settings: StreamConfig = config.model_copy(
        update={
            "buffer_capacity": capacity,
            "backpressure_policy": policy,
            "malformed_frame_policy": (
                MalformedFramePolicy.TERMINATE if strict else MalformedFramePolicy.SKIP
            ),
        }
    )
    session = RTMSession(_read_frames(frames_file), settings=settings)
    events = asyncio.run(_collect(session))

    table = Table(title=f"Events from {escape(frames_file.name)}")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Kind", style="cyan")
    table.add_column("Channel")
    table.add_column("User")
    table.add_column("Detail")

    for index, event in enumerate(events, start=1):
        kind_style = "yellow" if isinstance(event, UnknownEvent) else "green"
        table.add_row(
            str(index),
            f"[{kind_style}]{event.kind.value}[/{kind_style}]",
            escape(_channel(event)),
            escape(getattr(event, "user", "") or ""),
            escape(_detail(event)),
        )

    console.print(table)

    stats = session.get_stats()
    summary = (
        f"[bold]{stats['frames_received']}[/bold] frame(s), "
        f"[bold]{len(events)}[/bold] event(s), "
        f"[yellow]{stats['dispatch']['unknown']}[/yellow] unknown, "
        f"[red]{stats['malformed_frames']}[/red] malformed"
    )
    if settings.drops_under_pressure:
        summary += f", {stats['stream']['dropped']} dropped"
    console.print(summary)

    if session.error is not None:
        console.print(
            "[bold red]Stopped on malformed frame:[/bold red] "
            f"{escape(str(session.error))}"
        )
        raise typer.Exit(code=1)
