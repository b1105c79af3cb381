"""chatrelay CLI."""
