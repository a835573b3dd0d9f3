"""``rtmkit kinds`` — list the event kinds the default registry decodes."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from rtmkit.core.registry import default_registry

console = Console()


def kinds_cmd() -> None:
    """List registered discriminants and their decoders.

    Frames with any other ``type`` are delivered as ``unknown`` events.
    """
    registry = default_registry()

    table = Table(title="Registered Event Kinds")
    table.add_column("Discriminant", style="cyan")
    table.add_column("Decoder", style="green")

    for discriminant in registry.discriminants():
        decode_fn = registry.resolve(discriminant)
        table.add_row(discriminant, getattr(decode_fn, "__name__", repr(decode_fn)))

    console.print(table)
    console.print(f"[dim]{len(registry)} kind(s); anything else decodes as 'unknown'.[/dim]")
