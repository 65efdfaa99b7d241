"""Storage lifecycle services."""
