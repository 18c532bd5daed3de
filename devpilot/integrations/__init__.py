"""Clients for external source-control services."""
