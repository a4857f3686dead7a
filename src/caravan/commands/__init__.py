"""Command implementations for the caravan CLI."""
