"""Command-line interface for agent-shell."""
