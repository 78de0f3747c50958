# API Routes Module
from app.api.routes import (
    billing,
    export,
    magic_fill,
    process_photo,
    product_drafts,
    quota,
    subscription,
    webhooks,
)

__all__ = [
    "billing",
    "export",
    "magic_fill",
    "process_photo",
    "product_drafts",
    "quota",
    "subscription",
    "webhooks",
]
