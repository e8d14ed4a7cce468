"""
Unit tests for metrics, scheduling and request correlation.

Tests cover:
- Allocation outcome counters
- Status transition counter ignoring empty sweeps
- Periodic sweep jobs registered on the scheduler
- X-Correlation-ID echo
"""

from uuid import uuid4

import pytest
from httpx import AsyncClient
from prometheus_client import REGISTRY

from core.exceptions import NoAvailableSeatsError
from core.metrics import track_allocation, track_status_transitions


def _sample(name: str, labels: dict) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestAllocationMetrics:
    @pytest.mark.asyncio
    async def test_success_is_counted(self):
        labels = {"entry_point": "unit_success", "outcome": "success"}
        before = _sample("inventory_seat_allocations_total", labels)

        async with track_allocation("unit_success"):
            pass

        assert _sample("inventory_seat_allocations_total", labels) == before + 1

    @pytest.mark.asyncio
    async def test_exhausted_pool_is_counted_and_reraised(self):
        labels = {"entry_point": "unit_failure", "outcome": "no_available_seats"}
        before = _sample("inventory_seat_allocations_total", labels)

        with pytest.raises(NoAvailableSeatsError):
            async with track_allocation("unit_failure"):
                raise NoAvailableSeatsError(uuid4())

        assert _sample("inventory_seat_allocations_total", labels) == before + 1

    def test_empty_transition_is_not_recorded(self):
        labels = {"to_status": "unit_noop"}

        track_status_transitions("unit_noop", 0)

        assert REGISTRY.get_sample_value("inventory_pool_status_transitions_total", labels) is None


class TestScheduler:
    @pytest.mark.asyncio
    async def test_sweep_jobs_registered(self):
        from core import scheduler as scheduler_module

        scheduler_module.start_scheduler()
        try:
            job_ids = {job.id for job in scheduler_module.scheduler.get_jobs()}
            assert job_ids == {"refresh_pool_status", "refresh_personal_accounts"}
        finally:
            scheduler_module.shutdown_scheduler()


class TestCorrelationId:
    @pytest.mark.asyncio
    async def test_caller_id_is_echoed(self, client: AsyncClient):
        response = await client.get(
            "/api/v1/resource-pools", headers={"X-Correlation-ID": "trace-123"}
        )

        assert response.headers["X-Correlation-ID"] == "trace-123"

    @pytest.mark.asyncio
    async def test_id_is_generated(self, client: AsyncClient):
        response = await client.get("/api/v1/resource-pools")

        assert response.headers["X-Correlation-ID"]
