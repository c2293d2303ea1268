"""
HTTP surface of Vaisu.

Exports the routers registered by `vaisu.main`.

Usage:
    from vaisu.api import documents_router
    app.include_router(documents_router)
"""

from vaisu.api.routes import (
    auth_router,
    billing_router,
    documents_router,
    health_router,
    webhooks_router,
)

__all__ = [
    "auth_router",
    "billing_router",
    "documents_router",
    "health_router",
    "webhooks_router",
]
