from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import relationship
from .base import Base


class Delivery(Base):
    __tablename__ = "zaikon_deliveries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("zaikon_orders.id"), nullable=False, unique=True)
    customer_name = Column(String(255), nullable=False)
    customer_phone = Column(String(32), nullable=False)
    location_name = Column(String(255), nullable=True)
    distance_km = Column(Numeric(8, 2), nullable=False, default=0)
    delivery_charges = Column(Numeric(12, 2), nullable=False, default=0)
    is_free_delivery = Column(Boolean, nullable=False, default=False)
    special_instruction = Column(Text, nullable=True)
    assigned_rider_id = Column(Integer, nullable=True, index=True)
    delivery_status = Column(String(16), nullable=False, default="pending", doc="pending/assigned/picked/on_route/delivered/failed")
    rider_payout_amount = Column(Numeric(12, 2), nullable=True)
    rider_payout_slab = Column(String(16), nullable=True)
    payout_type = Column(String(16), nullable=True)
    delivered_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now())

    order = relationship("Order", back_populates="delivery")
