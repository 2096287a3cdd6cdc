from decimal import Decimal

import pytest
from conftest import FakeClient, make_session, remote_error

from parkdesk.dashboard import DashboardFeed, aggregate, occupancy_percent, vehicle_class
from parkdesk.schemas import DashboardStats

pytestmark = pytest.mark.anyio

STATS = DashboardStats(
    active_vehicles=3,
    completed_today=12,
    base_fees_collected=Decimal("600.00"),
    overstay_fees_collected=Decimal("140.00"),
    total_revenue_today=Decimal("740.00"),
)


def test_occupancy_clamps_at_capacity():
    assert occupancy_percent(55, 50) == 100
    assert occupancy_percent(25, 50) == 50
    assert occupancy_percent(0, 50) == 0


def test_vehicle_classes():
    assert vehicle_class("bike") == "2W"
    assert vehicle_class("Car") == "4W"
    assert vehicle_class("truck") == "truck"


def test_live_metrics_come_from_active_sessions():
    sessions = [
        make_session("S1", vehicle_type="car", is_overstay=True),
        make_session("S2", vehicle_type="car"),
        make_session("S3", vehicle_type="bike", is_overstay=False),
        make_session("S4", vehicle_type="truck", is_overstay=True),
    ]

    live = aggregate(STATS, sessions, capacity=50).live

    assert live.active_count == 4
    assert live.occupancy_percent == 8
    assert live.vehicle_types == {"2W": 1, "4W": 2, "truck": 1}
    assert live.overstay_count == 2


def test_overfull_facility_reports_full():
    sessions = [make_session(f"S{i}") for i in range(55)]
    assert aggregate(STATS, sessions, capacity=50).live.occupancy_percent == 100


def test_revenue_is_taken_as_reported():
    # the active set carries base fees too, but exited sessions are only in the stats
    sessions = [make_session("S1", base_fee_paid=Decimal("50"))]

    summary = aggregate(STATS, sessions)

    assert summary.reported.total_revenue_today == Decimal("740.00")
    assert summary.reported.overstay_fees_collected == Decimal("140.00")
    assert summary.reported.completed_today == 12


def test_empty_facility_keeps_both_vehicle_classes():
    summary = aggregate(None, [])

    assert summary.live.vehicle_types == {"2W": 0, "4W": 0}
    assert summary.live.overstay_count == 0
    assert summary.reported is None


async def test_feed_refresh_and_failure():
    client = FakeClient(sessions=[make_session("S1", is_overstay=True)], stats=STATS)
    feed = DashboardFeed(client, capacity=2)

    assert await feed.refresh()
    summary = feed.summary()
    assert summary.live.occupancy_percent == 50
    assert summary.live.overstay_count == 1
    assert summary.reported == STATS
    assert summary.error is None

    client.fetch_error = remote_error("GetStatsData")
    assert not await feed.refresh()
    summary = feed.summary()
    assert summary.reported == STATS
    assert summary.live.active_count == 1
    assert "GetStatsData" in summary.error
