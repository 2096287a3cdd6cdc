from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from datetime import datetime
from parkdesk.models import UnsettledCharge


async def get_charge(db: AsyncSession, overstay_charge_id: str):
    result = await db.execute(
        select(UnsettledCharge).where(UnsettledCharge.overstay_charge_id == overstay_charge_id)
    )
    return result.scalars().first()


async def record_unsettled_charge(db: AsyncSession, attempt):
    existing = await get_charge(db, attempt.charge.id)
    if existing:
        return existing

    charge = UnsettledCharge(
        overstay_charge_id=attempt.charge.id,
        session_id=attempt.session_id,
        vehicle_number=attempt.session.vehicle_number,
        fee_amount=attempt.processed.overstay_fee,
    )
    db.add(charge)
    await db.flush()
    await db.refresh(charge)
    return charge


async def list_outstanding_charges(db: AsyncSession):
    result = await db.execute(
        select(UnsettledCharge)
        .where(UnsettledCharge.is_outstanding == True)
        .order_by(UnsettledCharge.exited_at)
    )
    return result.scalars().all()


async def mark_charge_collected(db: AsyncSession, overstay_charge_id: str):
    charge = await get_charge(db, overstay_charge_id)
    if not charge:
        return None

    charge.collected_at = datetime.utcnow()
    charge.is_outstanding = False
    await db.flush()
    await db.refresh(charge)

    return charge
