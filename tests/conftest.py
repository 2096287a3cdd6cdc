from datetime import datetime, timezone
from decimal import Decimal

import pytest

from parkdesk.errors import RemoteOperationError
from parkdesk.schemas import (
    DashboardStats,
    OverstayCharge,
    PricingRule,
    ProcessedExit,
    VehicleEntryResponse,
    VehicleSession,
)

NOW = datetime(2026, 10, 19, 12, 30, tzinfo=timezone.utc)


@pytest.fixture
def anyio_backend():
    return "asyncio"


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 10, 19, hour, minute, tzinfo=timezone.utc)


def make_session(session_id="S1", entry_time=None, vehicle_type="car", **fields) -> VehicleSession:
    data = {
        "id": f"id-{session_id}",
        "session_id": session_id,
        "driver_phone": "9876543210",
        "vehicle_type": vehicle_type,
        "vehicle_number": "KL01AB1234",
        "entry_time": entry_time or at(9),
        "status": "active",
        "base_fee_paid": Decimal("50"),
    }
    data.update(fields)
    return VehicleSession(**data)


def car_rule(**fields) -> PricingRule:
    data = {"id": "R1", "vehicle_type": "car", "base_fee": Decimal("50"), "base_hours": 2, "extra_hour_rate": Decimal("20")}
    data.update(fields)
    return PricingRule(**data)


def bike_rule(**fields) -> PricingRule:
    data = {"id": "R2", "vehicle_type": "bike", "base_fee": Decimal("20"), "base_hours": 2, "extra_hour_rate": Decimal("10")}
    data.update(fields)
    return PricingRule(**data)


class FakeClient:
    """In-memory stand-in for the GraphQL client."""

    def __init__(self, sessions=(), rules=(), stats=None):
        self.sessions = list(sessions)
        self.rules = list(rules)
        self.stats = stats or DashboardStats()
        self.calls = []
        self.fetch_error = None
        self.exit_result = None
        self.exit_error = None
        self.exit_gate = None
        self.collect_error = None

    async def monitor_data(self):
        self.calls.append(("monitor_data",))
        if self.fetch_error:
            raise self.fetch_error
        return list(self.sessions), list(self.rules)

    async def stats_data(self):
        self.calls.append(("stats_data",))
        if self.fetch_error:
            raise self.fetch_error
        return self.stats, list(self.sessions)

    async def log_vehicle_entry(self, driver_phone, vehicle_number, vehicle_type):
        self.calls.append(("log_vehicle_entry", driver_phone, vehicle_number, vehicle_type))
        session_id = f"S{len(self.sessions) + 1}"
        rule = next(r for r in self.rules if r.vehicle_type == vehicle_type)
        self.sessions.append(
            make_session(
                session_id,
                entry_time=NOW,
                vehicle_type=vehicle_type,
                driver_phone=driver_phone,
                vehicle_number=vehicle_number,
                base_fee_paid=rule.base_fee,
            )
        )
        return VehicleEntryResponse(
            id=f"id-{session_id}", session_id=session_id, base_fee_paid=rule.base_fee, vehicle_number=vehicle_number
        )

    async def process_vehicle_exit(self, session_id):
        self.calls.append(("process_vehicle_exit", session_id))
        if self.exit_gate is not None:
            await self.exit_gate.wait()
        if self.exit_error:
            raise self.exit_error
        self.sessions = [s for s in self.sessions if s.session_id != session_id]
        return self.exit_result or ProcessedExit(session_id=session_id, total_amount=Decimal("50"), overstay_fee=Decimal("0"))

    async def collect_overstay_payment(self, charge_id):
        self.calls.append(("collect_overstay_payment", charge_id))
        if self.collect_error:
            raise self.collect_error
        return OverstayCharge(id=charge_id, is_collected=True)

    async def transaction_history(self, **filters):
        self.calls.append(("transaction_history", filters))
        return {"total": 0, "page": filters.get("page"), "page_size": filters.get("page_size"), "items": []}

    def called(self, name):
        return [c for c in self.calls if c[0] == name]


def remote_error(operation="ProcessExit"):
    return RemoteOperationError(operation, "network unreachable")


class FixedClock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def client():
    return FakeClient(
        sessions=[
            make_session("S1", entry_time=at(9), declared_duration_hours=2),
            make_session("S2", entry_time=at(11), vehicle_type="bike", vehicle_number="KL07XY0001", driver_phone="9123456780"),
        ],
        rules=[car_rule(), bike_rule()],
    )
