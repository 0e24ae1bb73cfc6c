from sqlalchemy import Column, DateTime, Integer, Numeric, String, Text, func
from sqlalchemy.orm import relationship
from .base import Base


class Order(Base):
    __tablename__ = "zaikon_orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_number = Column(String(64), nullable=False, unique=True)
    tracking_token = Column(String(64), nullable=True, unique=True, index=True)
    order_type = Column(String(16), nullable=False, default="takeaway")
    items_subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    delivery_charges = Column(Numeric(12, 2), nullable=False, default=0)
    discounts = Column(Numeric(12, 2), nullable=False, default=0)
    taxes = Column(Numeric(12, 2), nullable=False, default=0)
    grand_total = Column(Numeric(12, 2), nullable=False, default=0)
    payment_status = Column(String(32), nullable=False, default="unpaid")
    payment_type = Column(String(32), nullable=False, default="cash")
    # plain string so legacy values written by older clients stay detectable
    order_status = Column(String(32), nullable=False, default="pending", index=True)
    special_instructions = Column(Text, nullable=True)
    cashier_id = Column(Integer, nullable=True)
    cooking_eta_minutes = Column(Integer, nullable=True, default=20)
    delivery_eta_minutes = Column(Integer, nullable=True, default=15)
    confirmed_at = Column(DateTime, nullable=True)
    cooking_started_at = Column(DateTime, nullable=True)
    ready_at = Column(DateTime, nullable=True)
    rider_assigned_at = Column(DateTime, nullable=True)
    dispatched_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now())

    items = relationship("OrderItem", back_populates="order", order_by="OrderItem.id")
    delivery = relationship("Delivery", back_populates="order", uselist=False)
