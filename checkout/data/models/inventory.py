from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, CheckConstraint

from checkout.data.database import Base


class InventoryModel(Base):
    __tablename__ = "inventory"

    product_id = Column(String, primary_key=True)
    sku = Column(String, nullable=False)

    quantity = Column(Integer, nullable=False, default=0)
    reserved = Column(Integer, nullable=False, default=0)
    available = Column(Integer, nullable=False, default=0)  # quantity - reserved
    low_stock_threshold = Column(Integer, nullable=False, default=10)

    location = Column(String, nullable=True)
    last_updated = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint("reserved >= 0", name="ck_inventory_reserved_non_negative"),
        CheckConstraint("reserved <= quantity", name="ck_inventory_reserved_le_quantity"),
        CheckConstraint("available = quantity - reserved", name="ck_inventory_available"),
        CheckConstraint("low_stock_threshold >= 0", name="ck_inventory_threshold"),
    )
