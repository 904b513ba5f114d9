"""Small helpers shared across Gitwright packages."""
