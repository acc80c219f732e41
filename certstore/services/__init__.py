"""Storage and lifecycle services."""
