"""Liveness and readiness probes.

Usage
-----
Import health resources for route registration::

    from gitwright.api.health.resources import HealthResource, ReadyResource
"""
