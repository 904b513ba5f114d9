"""Webhook delivery resource."""
