from matrimony.db.models.core import (
    AuditLog,
    ContactUsage,
    PackageMirror,
    PlanPurchase,
    Subscription,
)

__all__ = [
    "AuditLog",
    "ContactUsage",
    "PackageMirror",
    "PlanPurchase",
    "Subscription",
]
