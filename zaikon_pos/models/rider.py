from sqlalchemy import Column, DateTime, Integer, Numeric, String, func
from .base import Base


class Rider(Base):
    __tablename__ = "zaikon_riders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=True)
    vehicle_number = Column(String(32), nullable=True)
    status = Column(String(16), nullable=False, default="active")
    payout_type = Column(String(16), nullable=True, default="per_km")
    per_delivery_rate = Column(Numeric(10, 2), nullable=True)
    per_km_rate = Column(Numeric(10, 2), nullable=True)
    base_rate = Column(Numeric(10, 2), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
