from datetime import datetime
from typing import List, Optional

from parkdesk import config
from parkdesk.errors import RuleNotFound, SessionNotFound
from parkdesk.pricing import PricingCatalog
from parkdesk.quote import SECONDS_PER_HOUR, effective_base_hours
from parkdesk.schemas import SessionView, VehicleSession
from parkdesk.snapshot import RefreshingSnapshot, utcnow


def elapsed_hours(session: VehicleSession, now: datetime) -> float:
    """Server-reported duration when present, else wall-clock time since entry."""
    if session.duration_minutes is not None:
        return session.duration_minutes / 60
    return (now - session.entry_time).total_seconds() / SECONDS_PER_HOUR


def matches(session: VehicleSession, search: str) -> bool:
    if not search:
        return True
    if search in (session.driver_phone or ""):
        return True
    plate = (session.vehicle_number or "").upper()
    return bool(plate) and search.upper() in plate


class SessionMonitor(RefreshingSnapshot):
    """Live view of the active sessions and the pricing rules fetched with them."""

    name = "active sessions"

    def __init__(self, client, interval: float = config.REFRESH_INTERVAL_SECONDS, clock=utcnow):
        super().__init__(interval=interval, clock=clock)
        self.client = client
        self.sessions: List[VehicleSession] = []
        self.catalog = PricingCatalog()

    async def _fetch(self):
        sessions, rules = await self.client.monitor_data()
        return sessions, PricingCatalog(rules)

    def _apply(self, result):
        sessions, catalog = result
        self.sessions = list(sessions)
        self.catalog = catalog

    def visible(self, search: str = "") -> List[VehicleSession]:
        """Sessions matching the search, longest-parked first."""
        found = [s for s in self.sessions if matches(s, search)]
        return sorted(found, key=lambda s: s.entry_time)

    def find(self, session_id: str) -> VehicleSession:
        for session in self.sessions:
            if session.session_id == session_id:
                return session
        raise SessionNotFound(session_id)

    def is_overstaying(self, session: VehicleSession, now: Optional[datetime] = None) -> bool:
        if session.is_overstay is not None:
            return session.is_overstay
        now = now or self.clock()
        try:
            rule = self.catalog.lookup(session.vehicle_type)
        except RuleNotFound:
            return False
        return elapsed_hours(session, now) > effective_base_hours(session, rule)

    def describe(self, session: VehicleSession, now: Optional[datetime] = None) -> SessionView:
        now = now or self.clock()
        try:
            base_hours = effective_base_hours(session, self.catalog.lookup(session.vehicle_type))
        except RuleNotFound:
            base_hours = None
        return SessionView(
            session=session,
            elapsed_hours=round(elapsed_hours(session, now), 2),
            effective_base_hours=base_hours,
            is_overstaying=self.is_overstaying(session, now),
        )
