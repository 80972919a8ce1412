"""
app/api/routers package marker.
"""

from app.api.routers.calculation import router as calculation_router

__all__ = [
    "calculation_router",
]
