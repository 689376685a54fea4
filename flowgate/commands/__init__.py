"""Command implementations for the flowgate CLI."""
