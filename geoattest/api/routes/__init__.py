"""
API Routes
"""
from geoattest.api.routes import verify

__all__ = ["verify"]
