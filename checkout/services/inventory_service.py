# checkout/services/inventory_service.py
from dataclasses import dataclass
from datetime import datetime, timezone, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from checkout.data.models.inventory import InventoryModel
from checkout.domain.errors import ValidationError, NotFoundError, InsufficientStockError
from checkout.repos.inventory_repo import InventoryRepo, AuditLog
from checkout.utils.logging import get_logger

logger = get_logger(__name__)

BATCH_SIZE = 10  # backend "in" query limit

REASONS = frozenset({"sale", "return", "adjustment", "restock", "damage"})


@dataclass(frozen=True)
class StockAdjustment:
    product_id: str
    delta: int
    reason: str
    reference: str | None
    actor: str


@dataclass(frozen=True)
class StockAlert:
    product_id: str
    type: str  # low_stock, out_of_stock
    current_stock: int
    threshold: int | None
    message: str


def _chunks(items: list, size: int):
    for i in range(0, len(items), size):
        yield items[i:i + size]


def _now():
    return datetime.now(timezone.utc)


class InventoryService:
    """
    Inventory ledger: per-product stock counters plus reservations.

    Methods taking ``commit`` can join a larger transaction owned by the
    caller (the checkout flow); in that case audit entries are queued and only
    written once :meth:`commit` succeeds.
    """

    def __init__(
        self,
        db: Session,
        audit_log: AuditLog,
        default_threshold: int = 10,
        hold_ttl: int = 15 * 60,
    ):
        self.repo = InventoryRepo(db)
        self.audit_log = audit_log
        self.default_threshold = default_threshold
        self.hold_ttl = hold_ttl
        self._pending_audit: list[dict] = []

    #query

    def get_stock(self, product_id: str) -> InventoryModel | None:
        return self.repo.get(product_id)

    def get_stock_batch(self, product_ids: list[str]) -> dict[str, InventoryModel]:
        unique = list(dict.fromkeys(product_ids))
        result: dict[str, InventoryModel] = {}
        for chunk in _chunks(unique, BATCH_SIZE):
            for item in self.repo.get_many(chunk):
                result[item.product_id] = item
        return result

    def list_low_stock(self) -> list[StockAlert]:
        alerts = []
        for item in self.repo.list_all():
            if 0 < item.quantity <= item.low_stock_threshold:
                alerts.append(
                    StockAlert(
                        product_id=item.product_id,
                        type="low_stock",
                        current_stock=item.quantity,
                        threshold=item.low_stock_threshold,
                        message=f"Product {item.product_id} is running low on stock",
                    )
                )
            elif item.quantity == 0:
                alerts.append(
                    StockAlert(
                        product_id=item.product_id,
                        type="out_of_stock",
                        current_stock=0,
                        threshold=None,
                        message=f"Product {item.product_id} is out of stock",
                    )
                )
        return alerts

    def summary(self) -> dict:
        items = self.repo.list_all()
        return {
            "total_products": len(items),
            "total_quantity": sum(i.quantity for i in items),
            "low_stock_count": sum(1 for i in items if 0 < i.quantity <= i.low_stock_threshold),
            "out_of_stock_count": sum(1 for i in items if i.quantity == 0),
        }

    #commands

    def adjust_stock(
        self,
        product_id: str,
        delta: int,
        reason: str,
        reference: str | None = None,
        actor: str = "system",
        commit: bool = True,
    ) -> InventoryModel:
        if reason not in REASONS:
            raise ValidationError(f"Unknown stock adjustment reason: {reason}")
        if not isinstance(delta, int) or isinstance(delta, bool):
            raise ValidationError("Stock delta must be an integer")

        current = self.repo.quantity_for_update(product_id)
        if current is None:
            #first adjustment creates the row lazily
            applied = self._create_item(product_id, delta, commit)
        else:
            applied = self._apply_delta(product_id, delta, current)

        #the audit trail records what actually changed, not what was asked for
        self._queue_audit(product_id, applied, reason, reference, actor)

        if commit:
            self.commit()

        logger.info(
            f"Stock of {product_id} adjusted by {applied} (requested {delta}, {reason}, ref={reference}, by={actor})"
        )
        return self.repo.get(product_id)

    def _apply_delta(self, product_id: str, delta: int, current: int) -> int:
        self.repo.apply_delta(product_id, delta)
        return max(0, current + delta) - current

    def _create_item(self, product_id: str, delta: int, commit: bool) -> int:
        quantity = max(0, delta)
        try:
            self.repo.insert(
                InventoryModel(
                    product_id=product_id,
                    sku=f"SKU-{product_id}",
                    quantity=quantity,
                    reserved=0,
                    available=quantity,
                    low_stock_threshold=self.default_threshold,
                )
            )
            logger.info(f"Created inventory record for {product_id} with quantity {quantity}")
            return quantity
        except IntegrityError:
            #someone else created it first, apply the delta on their row
            if not commit:
                raise
            self.rollback()
            return self._apply_delta(product_id, delta, self.repo.quantity_for_update(product_id))

    def bulk_adjust(self, updates: list[StockAdjustment]) -> list[InventoryModel]:
        return [
            self.adjust_stock(u.product_id, u.delta, u.reason, u.reference, u.actor)
            for u in updates
        ]

    def reserve(
        self,
        product_id: str,
        quantity: int,
        reference: str | None = None,
        commit: bool = True,
    ) -> bool:
        """Hold ``quantity`` units. Returns False (never raises) when not enough is available."""
        if quantity <= 0:
            raise ValidationError("Reservation quantity must be greater than 0")

        if self.repo.try_reserve(product_id, quantity) == 0:
            if commit:
                self.rollback()
            logger.info(f"Reservation of {quantity} x {product_id} refused")
            return False

        self.repo.add_hold(product_id, quantity, reference, _now() + timedelta(seconds=self.hold_ttl))
        if commit:
            self.commit()

        logger.info(f"Reserved {quantity} x {product_id} (ref={reference})")
        return True

    def release(
        self,
        product_id: str,
        quantity: int,
        reference: str | None = None,
        commit: bool = True,
    ) -> InventoryModel | None:
        """Give back held units. With a ``reference``, only while its hold still exists."""
        if reference is not None and self.repo.drop_holds(product_id, reference) == 0:
            #the expiry sweep already gave this hold back
            logger.info(f"No hold for {product_id} (ref={reference}), nothing to release")
            if commit:
                self.commit()
            return self.repo.get(product_id)

        self.repo.release(product_id, quantity)
        if commit:
            self.commit()

        logger.info(f"Released {quantity} x {product_id} (ref={reference})")
        return self.repo.get(product_id)

    def commit_reservation(
        self,
        product_id: str,
        quantity: int,
        reference: str | None = None,
        actor: str = "system",
        commit: bool = True,
    ) -> None:
        """Turn a reservation into a permanent debit of ``quantity``."""
        if reference is not None and self.repo.drop_holds(product_id, reference) == 0:
            #hold expired and was released, its units may already belong to someone else
            raise InsufficientStockError(product_id, quantity)
        if self.repo.debit_reserved(product_id, quantity) == 0:
            raise InsufficientStockError(product_id, quantity)

        self._queue_audit(product_id, -quantity, "sale", reference, actor)
        if commit:
            self.commit()

        logger.info(f"Debited {quantity} x {product_id} (ref={reference})")

    def set_threshold(self, product_id: str, threshold: int) -> InventoryModel:
        if not isinstance(threshold, int) or isinstance(threshold, bool) or threshold < 0:
            raise ValidationError("Low stock threshold must be a non-negative integer")

        if self.repo.set_threshold(product_id, threshold) == 0:
            raise NotFoundError(f"No inventory record for product {product_id}")
        self.commit()

        return self.repo.get(product_id)

    def release_expired_holds(self, now: datetime | None = None) -> int:
        """Release holds left behind by checkouts that never reached the debit step."""
        released = 0
        for hold in self.repo.expired_holds(now or _now()):
            #whoever deletes the hold owns the release: another sweep or the debit may have won
            if self.repo.drop_hold(hold.id) == 0:
                continue
            self.repo.release(hold.product_id, hold.quantity)
            logger.warning(
                f"Released expired hold {hold.id}: {hold.quantity} x {hold.product_id} (ref={hold.reference})"
            )
            released += 1
        self.commit()
        return released

    #transaction

    def _queue_audit(self, product_id, delta, reason, reference, actor) -> None:
        self._pending_audit.append(
            {
                "product_id": product_id,
                "quantity_change": delta,
                "reason": reason,
                "reference": reference,
                "performed_by": actor,
                "timestamp": _now(),
            }
        )

    def commit(self) -> None:
        self.repo.commit()
        entries, self._pending_audit = self._pending_audit, []
        #the stock change is durable now, auditing it is best effort
        try:
            self.audit_log.record(entries)
        except Exception as e:
            logger.warning(f"Inventory audit sink failed for {len(entries)} entries: {e}")

    def rollback(self) -> None:
        self.repo.rollback()
        self._pending_audit = []
