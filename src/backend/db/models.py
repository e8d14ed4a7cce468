"""
Database models for the resource pool inventory.

Tables:
- resource_pools: shared-capacity accounts (family/team/workspace licenses)
- resource_pool_seats: numbered seats inside a pool, leased to customers
- subscriptions: the customer subscription records that point at a seat
- personal_accounts: single-tenant accounts with an expiry date

All datetimes are stored as timezone-naive UTC (see utc_now).
Enum-typed columns store the enum value as a plain string.
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlmodel import Field, Relationship, SQLModel

from models.model_enum import (
    PersonalAccountStatus,
    PoolStatus,
    PoolType,
    SeatStatus,
)


def utc_now() -> datetime:
    """
    Get current time in UTC (timezone-naive) for database storage.

    The application layer converts to the user's timezone when displaying.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _in_values(column: str, enum_cls) -> str:
    values = ", ".join(f"'{member.value}'" for member in enum_cls)
    return f"{column} IN ({values})"


class TableModel(SQLModel):
    """Base table model with common functionality."""

    pass


# ============================================================================
# RESOURCE POOLS
# ============================================================================


class ResourcePool(TableModel, table=True):
    """
    A shared-capacity account whose seats are leased to customers.

    used_seats is an aggregate of the pool's seats in 'assigned' status. It is
    never written by callers: the seat ledger recomputes it in the same
    transaction as every seat write.
    """

    __tablename__ = "resource_pools"

    id: UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid, primary_key=True),
    )
    provider: str = Field(
        sa_column=Column(String(100), nullable=False),
        description="Underlying service key, e.g. microsoft_365",
    )
    pool_type: str = Field(
        sa_column=Column(String(30), nullable=False),
        description="admin_console | family | team | workspace",
    )
    login_email: str = Field(
        sa_column=Column(String(255), nullable=False),
        description="Login of the shared account",
    )
    login_secret: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
        description="Opaque credential blob",
    )
    notes: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
    )
    start_at: datetime = Field(sa_column=Column(DateTime, nullable=False))
    end_at: datetime = Field(sa_column=Column(DateTime, nullable=False))
    is_alive: bool = Field(
        default=True,
        sa_column=Column(Boolean, nullable=False, default=True, server_default=text("true")),
        description="False once the pool is archived",
    )
    max_seats: int = Field(sa_column=Column(Integer, nullable=False))
    used_seats: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, default=0, server_default=text("0")),
    )
    status: str = Field(
        default=PoolStatus.ACTIVE.value,
        sa_column=Column(
            String(20),
            nullable=False,
            default=PoolStatus.ACTIVE.value,
            server_default=text(f"'{PoolStatus.ACTIVE.value}'"),
        ),
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False, default=utc_now),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False, default=utc_now),
    )

    seats: List["ResourcePoolSeat"] = Relationship(
        back_populates="pool",
        sa_relationship_kwargs={
            "order_by": "ResourcePoolSeat.seat_index",
            "passive_deletes": True,
            "lazy": "raise_on_sql",
        },
    )

    __table_args__ = (
        CheckConstraint("max_seats > 0", name="ck_resource_pools_max_seats_positive"),
        CheckConstraint(
            "used_seats >= 0 AND used_seats <= max_seats",
            name="ck_resource_pools_used_seats_range",
        ),
        CheckConstraint("end_at > start_at", name="ck_resource_pools_window"),
        CheckConstraint(_in_values("pool_type", PoolType), name="ck_resource_pools_pool_type"),
        CheckConstraint(_in_values("status", PoolStatus), name="ck_resource_pools_status"),
        Index("ix_resource_pools_provider", "provider"),
        Index("ix_resource_pools_status", "status"),
        Index("ix_resource_pools_end_at", "end_at"),
        Index("ix_resource_pools_pool_type", "pool_type"),
    )


class ResourcePoolSeat(TableModel, table=True):
    """
    One leasable slot inside a pool.

    seat_index is 0-based, unique within the pool and never renumbered.
    An available seat carries no assignee; an assigned seat always has an
    assigned_email. Both rules are enforced by check constraints.
    """

    __tablename__ = "resource_pool_seats"

    id: UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid, primary_key=True),
    )
    pool_id: UUID = Field(
        sa_column=Column(
            Uuid,
            ForeignKey("resource_pools.id", ondelete="CASCADE"),
            nullable=False,
        ),
    )
    seat_index: int = Field(sa_column=Column(Integer, nullable=False))
    seat_status: str = Field(
        default=SeatStatus.AVAILABLE.value,
        sa_column=Column(
            String(20),
            nullable=False,
            default=SeatStatus.AVAILABLE.value,
            server_default=text(f"'{SeatStatus.AVAILABLE.value}'"),
        ),
    )
    assigned_email: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True),
    )
    # Weak references: clients and subscriptions are owned elsewhere
    assigned_client_id: Optional[UUID] = Field(
        default=None,
        sa_column=Column(Uuid, nullable=True),
    )
    assigned_subscription_id: Optional[UUID] = Field(
        default=None,
        sa_column=Column(Uuid, nullable=True),
    )
    assigned_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime, nullable=True),
    )
    unassigned_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime, nullable=True),
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False, default=utc_now),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False, default=utc_now),
    )

    pool: Optional[ResourcePool] = Relationship(
        back_populates="seats",
        sa_relationship_kwargs={"lazy": "raise_on_sql"},
    )

    __table_args__ = (
        UniqueConstraint("pool_id", "seat_index", name="uq_resource_pool_seats_pool_index"),
        CheckConstraint("seat_index >= 0", name="ck_resource_pool_seats_index"),
        CheckConstraint(_in_values("seat_status", SeatStatus), name="ck_resource_pool_seats_status"),
        CheckConstraint(
            "seat_status <> 'available' OR (assigned_email IS NULL "
            "AND assigned_client_id IS NULL AND assigned_subscription_id IS NULL)",
            name="ck_resource_pool_seats_available_is_empty",
        ),
        CheckConstraint(
            "seat_status <> 'assigned' OR assigned_email IS NOT NULL",
            name="ck_resource_pool_seats_assigned_has_email",
        ),
        Index("ix_pool_seats_pool", "pool_id"),
        Index("ix_pool_seats_pool_status_index", "pool_id", "seat_status", "seat_index"),
        Index("ix_pool_seats_assigned_sub", "assigned_subscription_id"),
        Index("ix_pool_seats_assigned_client", "assigned_client_id"),
    )


# ============================================================================
# SUBSCRIPTIONS (external collaborator, only the pool back-references matter)
# ============================================================================


class Subscription(TableModel, table=True):
    """
    Customer subscription record.

    resource_pool_id / resource_pool_seat_id are kept consistent with the
    seat's assigned_subscription_id by the seat ledger.
    """

    __tablename__ = "subscriptions"

    id: UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid, primary_key=True),
    )
    client_id: Optional[UUID] = Field(
        default=None,
        sa_column=Column(Uuid, nullable=True),
    )
    service_id: Optional[UUID] = Field(
        default=None,
        sa_column=Column(Uuid, nullable=True),
    )
    status: str = Field(
        default="active",
        sa_column=Column(String(20), nullable=False, default="active"),
    )
    notes: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
    )
    resource_pool_id: Optional[UUID] = Field(
        default=None,
        sa_column=Column(
            Uuid,
            ForeignKey("resource_pools.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    resource_pool_seat_id: Optional[UUID] = Field(
        default=None,
        sa_column=Column(
            Uuid,
            ForeignKey("resource_pool_seats.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False, default=utc_now),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False, default=utc_now),
    )

    __table_args__ = (
        CheckConstraint(
            "(resource_pool_id IS NULL) = (resource_pool_seat_id IS NULL)",
            name="ck_subscriptions_pool_link_pair",
        ),
        Index("ix_subscriptions_resource_pool", "resource_pool_id"),
        Index("ix_subscriptions_resource_pool_seat", "resource_pool_seat_id"),
    )


# ============================================================================
# PERSONAL ACCOUNTS
# ============================================================================


class PersonalAccount(TableModel, table=True):
    """Single-tenant account: one login, one customer, an expiry date."""

    __tablename__ = "personal_accounts"

    id: UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid, primary_key=True),
    )
    provider: str = Field(sa_column=Column(String(100), nullable=False))
    login_email: str = Field(sa_column=Column(String(255), nullable=False))
    login_secret: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
    )
    notes: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
    )
    expiry_date: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime, nullable=True),
    )
    status: str = Field(
        default=PersonalAccountStatus.AVAILABLE.value,
        sa_column=Column(
            String(20),
            nullable=False,
            default=PersonalAccountStatus.AVAILABLE.value,
        ),
    )
    assigned_to_client_id: Optional[UUID] = Field(
        default=None,
        sa_column=Column(Uuid, nullable=True),
    )
    assigned_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime, nullable=True),
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False, default=utc_now),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False, default=utc_now),
    )

    __table_args__ = (
        CheckConstraint(
            _in_values("status", PersonalAccountStatus),
            name="ck_personal_accounts_status",
        ),
        Index("ix_personal_accounts_provider", "provider"),
        Index("ix_personal_accounts_status", "status"),
        Index("ix_personal_accounts_expiry_date", "expiry_date"),
    )
