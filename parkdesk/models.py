from sqlalchemy import Column, Integer, String, Boolean, Numeric, TIMESTAMP
from datetime import datetime
from parkdesk.database import Base


class UnsettledCharge(Base):
    """An exit that went through upstream while its overstay charge was left uncollected."""

    __tablename__ = "unsettled_charges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    overstay_charge_id = Column(String(64), nullable=False, unique=True)
    session_id = Column(String(64), nullable=False)
    vehicle_number = Column(String(20), nullable=True)
    fee_amount = Column(Numeric(10, 2), nullable=False)
    exited_at = Column(TIMESTAMP, default=datetime.utcnow)
    collected_at = Column(TIMESTAMP, nullable=True)
    is_outstanding = Column(Boolean, default=True)
