"""
Prometheus metrics for the inventory engine.

This module defines metrics for:
- Seat allocation (per entry point, per outcome)
- Seat releases
- Pool status transitions made by the sweep and by archive/restore
- Sweep duration

Usage:
    from core.metrics import track_allocation, track_sweep

    async with track_allocation("next_free"):
        await claim_seat(...)

    async with track_sweep("pools"):
        await run_sweep(...)
"""

from contextlib import asynccontextmanager
from time import time

from prometheus_client import Counter, Histogram

from core.exceptions import (
    NoAvailableSeatsError,
    PoolNotAssignableError,
    SeatUnavailableError,
)

# ==============================================================================
# Allocation Metrics
# ==============================================================================

seat_allocations = Counter(
    'inventory_seat_allocations_total',
    'Seat allocation attempts by entry point and outcome',
    ['entry_point', 'outcome']
)

seat_releases = Counter(
    'inventory_seat_releases_total',
    'Seats returned to available'
)

seat_claim_conflicts = Counter(
    'inventory_seat_claim_conflicts_total',
    'Candidate seats lost to a concurrent allocator and retried',
)

# ==============================================================================
# Lifecycle Metrics
# ==============================================================================

pool_status_transitions = Counter(
    'inventory_pool_status_transitions_total',
    'Pool status changes written by the sweep, archive and restore',
    ['to_status']
)

sweep_duration = Histogram(
    'inventory_sweep_duration_seconds',
    'Duration of a status sweep',
    ['sweep'],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, float('inf'))
)


# ==============================================================================
# Context Managers for Easy Tracking
# ==============================================================================

def _allocation_outcome(exc: Exception) -> str:
    if isinstance(exc, NoAvailableSeatsError):
        return 'no_available_seats'
    if isinstance(exc, SeatUnavailableError):
        return 'seat_unavailable'
    if isinstance(exc, PoolNotAssignableError):
        return 'pool_not_assignable'
    return 'error'


@asynccontextmanager
async def track_allocation(entry_point: str):
    """
    Count an allocation attempt and its outcome.

    Args:
        entry_point: 'specific', 'next_free' or 'link'
    """
    try:
        yield
    except Exception as e:
        seat_allocations.labels(
            entry_point=entry_point,
            outcome=_allocation_outcome(e)
        ).inc()
        raise
    else:
        seat_allocations.labels(entry_point=entry_point, outcome='success').inc()


@asynccontextmanager
async def track_sweep(sweep: str = "pools"):
    """Record how long a status sweep took."""
    start_time = time()
    try:
        yield
    finally:
        sweep_duration.labels(sweep=sweep).observe(time() - start_time)


def track_release():
    """Track a seat release."""
    seat_releases.inc()


def track_claim_conflict():
    """Track a lost race on a candidate seat."""
    seat_claim_conflicts.inc()


def track_status_transitions(to_status: str, count: int):
    """Track pools moved to a status."""
    if count > 0:
        pool_status_transitions.labels(to_status=to_status).inc(count)
