"""
Database models using SQLModel.

Tables for shared resource pools, their seats, the subscriptions that hold
seats, and single-tenant personal accounts.
"""
from .models import (
    PersonalAccount,
    ResourcePool,
    ResourcePoolSeat,
    Subscription,
    TableModel,
    utc_now,
)

__all__ = [
    "TableModel",
    "ResourcePool",
    "ResourcePoolSeat",
    "Subscription",
    "PersonalAccount",
    "utc_now",
]
