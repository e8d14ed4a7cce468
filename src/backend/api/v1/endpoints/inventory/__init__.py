"""Inventory endpoints: pools, seats, subscription links and personal accounts."""

from . import personal_accounts, resource_pools, seats, subscriptions

__all__ = [
    "personal_accounts",
    "resource_pools",
    "seats",
    "subscriptions",
]
