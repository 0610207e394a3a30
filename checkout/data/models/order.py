from sqlalchemy import Column, Integer, String, DateTime, Numeric
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from checkout.data.database import Base


def _now():
    return datetime.now(timezone.utc)


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    owner_id = Column(String, nullable=False, index=True)

    status = Column(String, nullable=False, default="pending")  # pending, paid, shipped, delivered, cancelled
    total = Column(Numeric(10, 2), nullable=False)

    shipping_address = Column(String, nullable=False)
    shipping_method = Column(String, nullable=False)
    shipping_cost = Column(Numeric(10, 2), nullable=False)

    payment_method = Column(String, nullable=False, default="pix")  # pix, card
    payment_status = Column(String, nullable=False, default="pending")  # pending, processing, completed, failed
    transaction_id = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.id",
    )
