"""
HTTP API for the order fan-out demo.

This package provides a single FastAPI application that exposes the
order-placement endpoint and per-order progress.
"""

from api.main import app

__all__ = ["app"]
