# checkout/repos/inventory_repo.py
from datetime import datetime, timezone

from sqlalchemy import select, update, delete, case, func
from sqlalchemy.orm import Session, sessionmaker

from checkout.data.models.inventory import InventoryModel
from checkout.data.models.inventory_audit import InventoryAuditModel
from checkout.data.models.stock_hold import StockHoldModel
from checkout.utils.logging import get_logger

logger = get_logger(__name__)

#every stock write below is one conditional UPDATE, the database serializes them per row
#there is no read-modify-write on quantity/reserved/available anywhere


def _now():
    return datetime.now(timezone.utc)


class InventoryRepo:
    def __init__(self, db: Session):
        self.db = db

    def get(self, product_id: str) -> InventoryModel | None:
        return self.db.execute(
            select(InventoryModel)
            .where(InventoryModel.product_id == product_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_many(self, product_ids: list[str]) -> list[InventoryModel]:
        return list(
            self.db.execute(
                select(InventoryModel)
                .where(InventoryModel.product_id.in_(product_ids))
                .execution_options(populate_existing=True)
            ).scalars()
        )

    def list_all(self) -> list[InventoryModel]:
        return list(
            self.db.execute(
                select(InventoryModel)
                .order_by(InventoryModel.product_id)
                .execution_options(populate_existing=True)
            ).scalars()
        )

    def quantity_for_update(self, product_id: str) -> int | None:
        #row lock until commit, so the clamped change can be audited exactly
        return self.db.execute(
            select(InventoryModel.quantity)
            .where(InventoryModel.product_id == product_id)
            .with_for_update()
        ).scalar_one_or_none()

    def insert(self, item: InventoryModel) -> InventoryModel:
        self.db.add(item)
        self.db.flush()
        return item

    def _update(self, product_id: str, *criteria, **values) -> int:
        res = self.db.execute(
            update(InventoryModel)
            .where(InventoryModel.product_id == product_id, *criteria)
            .values(last_updated=_now(), **values)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    def apply_delta(self, product_id: str, delta: int) -> int:
        # quantity' = max(0, quantity + delta), reserved' = min(reserved, quantity')
        new_quantity = case(
            (InventoryModel.quantity + delta < 0, 0),
            else_=InventoryModel.quantity + delta,
        )
        new_reserved = case(
            (InventoryModel.reserved > new_quantity, new_quantity),
            else_=InventoryModel.reserved,
        )
        return self._update(
            product_id,
            quantity=new_quantity,
            reserved=new_reserved,
            available=new_quantity - new_reserved,
        )

    def try_reserve(self, product_id: str, quantity: int) -> int:
        #compare-and-increment: matches only while enough stock is available
        return self._update(
            product_id,
            InventoryModel.available >= quantity,
            reserved=InventoryModel.reserved + quantity,
            available=InventoryModel.available - quantity,
        )

    def release(self, product_id: str, quantity: int) -> int:
        new_reserved = case(
            (InventoryModel.reserved < quantity, 0),
            else_=InventoryModel.reserved - quantity,
        )
        return self._update(
            product_id,
            reserved=new_reserved,
            available=InventoryModel.quantity - new_reserved,
        )

    def debit_reserved(self, product_id: str, quantity: int) -> int:
        #quantity and reserved drop together, available stays the same
        return self._update(
            product_id,
            InventoryModel.reserved >= quantity,
            quantity=InventoryModel.quantity - quantity,
            reserved=InventoryModel.reserved - quantity,
        )

    def set_threshold(self, product_id: str, threshold: int) -> int:
        return self._update(product_id, low_stock_threshold=threshold)

    # holds

    def add_hold(self, product_id: str, quantity: int, reference: str | None, expires_at: datetime) -> None:
        self.db.add(
            StockHoldModel(
                product_id=product_id,
                quantity=quantity,
                reference=reference,
                expires_at=expires_at,
            )
        )
        self.db.flush()

    def drop_holds(self, product_id: str, reference: str) -> int:
        res = self.db.execute(
            delete(StockHoldModel).where(
                StockHoldModel.product_id == product_id,
                StockHoldModel.reference == reference,
            )
        )
        return res.rowcount

    def drop_hold(self, hold_id: int) -> int:
        res = self.db.execute(delete(StockHoldModel).where(StockHoldModel.id == hold_id))
        return res.rowcount

    def expired_holds(self, now: datetime) -> list[StockHoldModel]:
        return list(
            self.db.execute(
                select(StockHoldModel).where(StockHoldModel.expires_at < now).order_by(StockHoldModel.id)
            ).scalars()
        )

    def count_holds(self, reference: str | None = None) -> int:
        stmt = select(func.count(StockHoldModel.id))
        if reference is not None:
            stmt = stmt.where(StockHoldModel.reference == reference)
        return self.db.execute(stmt).scalar_one()

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()


class AuditLog:
    """
    Append-only inventory audit trail.

    Entries are written in their own session after the stock change has been
    committed, so a failing audit write can never undo or block the mutation.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def record(self, entries: list[dict]) -> bool:
        if not entries:
            return True

        db = None
        try:
            db = self.session_factory()
            db.add_all(InventoryAuditModel(**entry) for entry in entries)
            db.commit()
            return True
        except Exception as e:
            if db is not None:
                db.rollback()
            logger.warning(f"Failed to write {len(entries)} inventory audit entries: {e}")
            return False
        finally:
            if db is not None:
                db.close()

    def entries_for(self, product_id: str) -> list[InventoryAuditModel]:
        db = self.session_factory()
        try:
            return list(
                db.execute(
                    select(InventoryAuditModel)
                    .where(InventoryAuditModel.product_id == product_id)
                    .order_by(InventoryAuditModel.timestamp, InventoryAuditModel.id)
                ).scalars()
            )
        finally:
            db.close()
