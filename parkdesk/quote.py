import math
from datetime import datetime
from decimal import Decimal

from parkdesk.schemas import ExitQuote, PricingRule, VehicleSession

SECONDS_PER_HOUR = 3600


def effective_base_hours(session: VehicleSession, rule: PricingRule) -> float:
    """Hours covered by the entry fee: the rule's default or the declared stay, whichever is longer."""
    return max(rule.base_hours, session.declared_duration_hours or 0)


def billable_hours(entry_time: datetime, now: datetime) -> int:
    # any started hour is billed in full
    elapsed = (now - entry_time).total_seconds()
    return max(0, math.ceil(elapsed / SECONDS_PER_HOUR))


def calculate_exit_quote(session: VehicleSession, rule: PricingRule, now: datetime) -> ExitQuote:
    actual = billable_hours(session.entry_time, now)
    base_hours = effective_base_hours(session, rule)
    overstay_hours = max(0, actual - base_hours)

    overstay_fee = rule.extra_hour_rate * Decimal(str(overstay_hours))
    total_cost = rule.base_fee + overstay_fee

    return ExitQuote(
        session_id=session.session_id,
        quoted_at=now,
        actual_duration_hours=actual,
        effective_base_hours=base_hours,
        overstay_hours=overstay_hours,
        base_fee=rule.base_fee,
        base_fee_paid=session.base_fee_paid,
        overstay_fee=overstay_fee,
        total_cost=total_cost,
        balance_due=overstay_fee,
    )
