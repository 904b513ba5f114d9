"""Gitwright HTTP API layer.

This package provides the Falcon ASGI application for git operations,
webhook deliveries and installation listings.

Usage
-----
Create and run the application::

    from gitwright.api import create_app

    app = create_app()              # health-only mode
    app = create_app(dependencies)  # full mode with domain endpoints

"""

from gitwright.api.app import AppDependencies, create_app

__all__ = ["AppDependencies", "create_app"]
