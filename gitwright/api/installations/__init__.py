"""Read-only installation and repository listings."""
