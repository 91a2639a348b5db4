"""Ingestion layer.

This package contains the intake adapters that validate raddecs and
decoded attribute candidates, correct their timestamps, and hand them to
the state store. Nothing here mutates device state directly.
"""

__all__: list[str] = []
