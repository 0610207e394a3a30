from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, Index

from checkout.data.database import Base


class InventoryAuditModel(Base):
    """Append-only log of stock mutations."""

    __tablename__ = "inventory_audit"

    id = Column(Integer, primary_key=True)
    product_id = Column(String, nullable=False)

    quantity_change = Column(Integer, nullable=False)
    reason = Column(String, nullable=False)  # sale, return, adjustment, restock, damage
    reference = Column(String, nullable=True)
    performed_by = Column(String, nullable=False)
    timestamp = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (Index("ix_inventory_audit_product_ts", "product_id", "timestamp"),)
