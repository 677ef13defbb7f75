"""
app/api/routers package marker.
"""

from app.api.routers.bulk_onboard import router as bulk_onboard_router

__all__ = [
    "bulk_onboard_router",
]
