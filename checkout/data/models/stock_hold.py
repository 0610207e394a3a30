from sqlalchemy import Column, Integer, String, DateTime

from checkout.data.database import Base


class StockHoldModel(Base):
    """Outstanding reservation; removed when the hold is debited or released."""

    __tablename__ = "stock_holds"

    id = Column(Integer, primary_key=True)
    product_id = Column(String, nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    reference = Column(String, nullable=True, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
