"""rtmkit CLI — Typer-based diagnostic tooling.

Offline inspection of captured RTM frames: replay a JSON-lines capture
through the decode/dispatch/stream pipeline and list the registered
event kinds.  No network access.

All output uses Rich for formatted terminal display.
"""
