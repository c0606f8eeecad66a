"""
ORM models. Importing this package registers every table with Base.metadata
(required by init_models() and Alembic autogenerate).
"""

from ecoplate.models.user import User
from ecoplate.models.product import Product
from ecoplate.models.marketplace import MarketplaceListing
from ecoplate.models.conversation import Conversation, Message
from ecoplate.models.gamification import (
    Badge,
    ProductSustainabilityMetric,
    UserBadge,
    UserPoints,
)
from ecoplate.models.consumption import PendingConsumptionRecord

__all__ = [
    "User",
    "Product",
    "MarketplaceListing",
    "Conversation",
    "Message",
    "Badge",
    "ProductSustainabilityMetric",
    "UserBadge",
    "UserPoints",
    "PendingConsumptionRecord",
]
