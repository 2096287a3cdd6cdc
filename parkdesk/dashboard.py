from typing import Dict, Iterable, List, Optional

from parkdesk import config
from parkdesk.schemas import DashboardStats, DashboardSummary, LiveOccupancy, VehicleSession
from parkdesk.snapshot import RefreshingSnapshot, utcnow

VEHICLE_CLASS_LABELS = {"bike": "2W", "car": "4W"}


def vehicle_class(vehicle_type: str) -> str:
    return VEHICLE_CLASS_LABELS.get((vehicle_type or "").lower(), vehicle_type)


def occupancy_percent(active_count: int, capacity: int) -> float:
    if capacity <= 0:
        return 100.0 if active_count else 0.0
    return min(active_count / capacity, 1) * 100


def vehicle_type_counts(sessions: Iterable[VehicleSession]) -> Dict[str, int]:
    counts = {"2W": 0, "4W": 0}
    for session in sessions:
        label = vehicle_class(session.vehicle_type)
        counts[label] = counts.get(label, 0) + 1
    return counts


def aggregate(
    stats: Optional[DashboardStats],
    sessions: List[VehicleSession],
    capacity: int = config.FACILITY_CAPACITY,
) -> DashboardSummary:
    """Combine metrics derived from the active set with the backend's own figures.

    Revenue and completed counts always come from ``stats`` as reported; fees
    collected today include sessions that have already left the active set.
    """
    live = LiveOccupancy(
        active_count=len(sessions),
        capacity=capacity,
        occupancy_percent=occupancy_percent(len(sessions), capacity),
        vehicle_types=vehicle_type_counts(sessions),
        overstay_count=sum(1 for s in sessions if s.is_overstay),
    )
    return DashboardSummary(live=live, reported=stats)


class DashboardFeed(RefreshingSnapshot):
    name = "dashboard stats"

    def __init__(
        self,
        client,
        capacity: int = config.FACILITY_CAPACITY,
        interval: float = config.REFRESH_INTERVAL_SECONDS,
        clock=utcnow,
    ):
        super().__init__(interval=interval, clock=clock)
        self.client = client
        self.capacity = capacity
        self.stats: Optional[DashboardStats] = None
        self.sessions: List[VehicleSession] = []

    async def _fetch(self):
        return await self.client.stats_data()

    def _apply(self, result):
        self.stats, sessions = result
        self.sessions = list(sessions)

    def summary(self) -> DashboardSummary:
        summary = aggregate(self.stats, self.sessions, self.capacity)
        summary.error = self.last_error
        return summary
