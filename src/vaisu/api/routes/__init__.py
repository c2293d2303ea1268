"""
API routers.

- health_router:    GET / and GET /api/health
- auth_router:      /api/auth/* (accounts, sessions, audit logs)
- documents_router: /api/documents/* (upload, analyze, search, visualizations)
- billing_router:   /api/billing/checkout-session
- webhooks_router:  /api/webhooks/stripe
"""

from vaisu.api.routes.auth import router as auth_router
from vaisu.api.routes.billing import router as billing_router
from vaisu.api.routes.documents import router as documents_router
from vaisu.api.routes.health import router as health_router
from vaisu.api.routes.webhooks import router as webhooks_router

__all__ = [
    "auth_router",
    "billing_router",
    "documents_router",
    "health_router",
    "webhooks_router",
]
