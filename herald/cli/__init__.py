"""Herald CLI — Typer-based command-line interface.

Provides the ``herald`` command with subcommands for firing events,
sweeping due escalations, applying delivery callbacks, and inspecting
message history.

All output uses Rich for formatted terminal display.
"""
