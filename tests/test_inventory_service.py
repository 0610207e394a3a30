import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from checkout.domain.errors import InsufficientStockError, NotFoundError, ValidationError
from checkout.repos.inventory_repo import AuditLog, InventoryRepo
from checkout.services import inventory_service as inventory_module
from checkout.services.inventory_service import InventoryService, StockAdjustment

from tests.conftest import FailingAuditLog, stock


def assert_consistent(item):
    assert 0 <= item.reserved <= item.quantity
    assert item.available == item.quantity - item.reserved


def test_first_adjustment_creates_record(inventory):
    item = stock(inventory, "P", 5)

    assert item.sku == "SKU-P"
    assert (item.quantity, item.reserved, item.available) == (5, 0, 5)
    assert item.low_stock_threshold == 10
    assert_consistent(item)


def test_unknown_product_has_no_record(inventory):
    assert inventory.get_stock("nope") is None


def test_negative_adjustment_clamps_at_zero(inventory):
    stock(inventory, "P", 3)
    item = inventory.adjust_stock("P", -10, reason="damage")
    assert item.quantity == 0
    assert_consistent(item)


def test_first_adjustment_negative_creates_empty_record(inventory):
    item = inventory.adjust_stock("P", -4, reason="adjustment")
    assert item.quantity == 0


def test_adjustment_below_reserved_shrinks_reservation(inventory):
    stock(inventory, "P", 5)
    assert inventory.reserve("P", 3)

    item = inventory.adjust_stock("P", -4, reason="damage")

    assert (item.quantity, item.reserved, item.available) == (1, 1, 0)


@pytest.mark.parametrize("reason", ["theft", "", None])
def test_adjustment_reason_is_validated(inventory, reason):
    with pytest.raises(ValidationError):
        inventory.adjust_stock("P", 1, reason=reason)


def test_adjustment_delta_must_be_integer(inventory):
    with pytest.raises(ValidationError):
        inventory.adjust_stock("P", 1.5, reason="restock")


def test_adjustments_are_audited(inventory, audit_log):
    stock(inventory, "P", 5)
    inventory.adjust_stock("P", -2, reason="damage", reference="rma-1", actor="alice")

    entries = audit_log.entries_for("P")

    assert [(e.quantity_change, e.reason) for e in entries] == [(5, "restock"), (-2, "damage")]
    assert entries[1].reference == "rma-1"
    assert entries[1].performed_by == "alice"


def test_audit_failure_never_blocks_the_mutation(db, tmp_path, caplog):
    # the audit session points at a database without the audit table
    broken = sessionmaker(bind=create_engine(f"sqlite:///{tmp_path / 'empty.db'}"))
    inventory = InventoryService(db, AuditLog(broken))

    item = inventory.adjust_stock("P", 7, reason="restock")

    assert item.quantity == 7
    assert "Failed to write 1 inventory audit entries" in caplog.text


def test_rolled_back_changes_are_not_audited(inventory, audit_log):
    inventory.adjust_stock("P", 5, reason="restock", commit=False)
    inventory.rollback()

    assert audit_log.entries_for("P") == []
    assert inventory.get_stock("P") is None


def test_bulk_adjust(inventory):
    items = inventory.bulk_adjust(
        [
            StockAdjustment("P", 4, "restock", None, "tester"),
            StockAdjustment("Q", 2, "restock", None, "tester"),
            StockAdjustment("P", -1, "sale", "order-1", "tester"),
        ]
    )
    assert [(i.product_id, i.quantity) for i in items] == [("P", 4), ("Q", 2), ("P", 3)]


def test_reserve_and_release(inventory):
    stock(inventory, "P", 5)

    assert inventory.reserve("P", 3, reference="r1")
    item = inventory.get_stock("P")
    assert (item.quantity, item.reserved, item.available) == (5, 3, 2)

    item = inventory.release("P", 3, reference="r1")
    assert (item.quantity, item.reserved, item.available) == (5, 0, 5)
    assert inventory.repo.count_holds() == 0


def test_reserve_refuses_without_changing_state(inventory):
    stock(inventory, "P", 2)

    assert inventory.reserve("P", 3) is False

    item = inventory.get_stock("P")
    assert (item.reserved, item.available) == (0, 2)
    assert inventory.repo.count_holds() == 0


def test_reserve_unknown_product_is_refused(inventory):
    assert inventory.reserve("nope", 1) is False


@pytest.mark.parametrize("quantity", [0, -2])
def test_reserve_requires_positive_quantity(inventory, quantity):
    stock(inventory, "P", 5)
    with pytest.raises(ValidationError):
        inventory.reserve("P", quantity)


def test_release_more_than_reserved_clamps(inventory):
    stock(inventory, "P", 5)
    inventory.reserve("P", 2)

    item = inventory.release("P", 10)

    assert (item.quantity, item.reserved, item.available) == (5, 0, 5)


def test_commit_reservation_debits_quantity(inventory, audit_log):
    stock(inventory, "P", 5)
    inventory.reserve("P", 3, reference="order-x")

    inventory.commit_reservation("P", 3, reference="order-x", actor="u1")

    item = inventory.get_stock("P")
    assert (item.quantity, item.reserved, item.available) == (2, 0, 2)
    assert inventory.repo.count_holds(reference="order-x") == 0
    assert audit_log.entries_for("P")[-1].reason == "sale"


def test_commit_reservation_without_reservation_fails(inventory):
    stock(inventory, "P", 5)
    with pytest.raises(InsufficientStockError):
        inventory.commit_reservation("P", 1)
    assert inventory.get_stock("P").quantity == 5


def test_batch_lookup_is_chunked(inventory):
    ids = [f"p{i:02d}" for i in range(25)]
    for pid in ids:
        stock(inventory, pid, 1)

    with patch.object(InventoryRepo, "get_many", wraps=inventory.repo.get_many) as get_many:
        result = inventory.get_stock_batch(ids + ["missing", "p00"])

    assert set(result) == set(ids)
    assert get_many.call_count == 3
    assert all(len(call.args[0]) <= inventory_module.BATCH_SIZE for call in get_many.call_args_list)


def test_low_stock_alerts(inventory):
    stock(inventory, "P", 50)
    stock(inventory, "Q", 4)
    inventory.adjust_stock("R", 0, reason="adjustment")

    alerts = {a.product_id: a for a in inventory.list_low_stock()}

    assert set(alerts) == {"Q", "R"}
    assert alerts["Q"].type == "low_stock"
    assert alerts["Q"].threshold == 10
    assert alerts["R"].type == "out_of_stock"
    assert alerts["R"].threshold is None


def test_threshold_changes_alerts(inventory):
    stock(inventory, "P", 50)

    item = inventory.set_threshold("P", 60)

    assert item.low_stock_threshold == 60
    assert [a.product_id for a in inventory.list_low_stock()] == ["P"]


def test_threshold_validation(inventory):
    stock(inventory, "P", 1)
    with pytest.raises(ValidationError):
        inventory.set_threshold("P", -1)
    with pytest.raises(NotFoundError):
        inventory.set_threshold("nope", 5)


def test_summary(inventory):
    stock(inventory, "P", 50)
    stock(inventory, "Q", 4)
    inventory.adjust_stock("R", 0, reason="adjustment")

    assert inventory.summary() == {
        "total_products": 3,
        "total_quantity": 54,
        "low_stock_count": 1,
        "out_of_stock_count": 1,
    }


def test_expired_holds_are_released(inventory):
    stock(inventory, "P", 5)
    inventory.reserve("P", 2, reference="dead-checkout")
    inventory.reserve("P", 1, reference="live-checkout")

    # only the first hold is past its expiry
    hold = inventory.repo.expired_holds(datetime.now(timezone.utc) + timedelta(days=1))[0]
    hold.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
    inventory.commit()

    assert inventory.release_expired_holds() == 1

    item = inventory.get_stock("P")
    assert (item.reserved, item.available) == (1, 4)
    assert inventory.repo.count_holds(reference="live-checkout") == 1


def test_concurrent_reservations_never_oversell(session_factory, audit_log):
    setup = InventoryService(session_factory(), audit_log)
    stock(setup, "P", 10)

    results = []
    barrier = threading.Barrier(8)

    def worker():
        db = session_factory()
        try:
            svc = InventoryService(db, audit_log)
            barrier.wait()
            results.append(svc.reserve("P", 3))
        finally:
            db.close()

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    item = setup.get_stock("P")
    assert results.count(True) == 10 // 3
    assert item.reserved == 9
    assert_consistent(item)


def test_audit_records_applied_change_when_clamped(inventory, audit_log):
    stock(inventory, "P", 3)

    inventory.adjust_stock("P", -10, reason="damage")

    assert [e.quantity_change for e in audit_log.entries_for("P")] == [3, -3]


def test_audit_sink_errors_are_contained(db, caplog):
    def no_sessions():
        raise RuntimeError("audit database unreachable")

    assert AuditLog(no_sessions).record([{"product_id": "P"}]) is False

    inventory = InventoryService(db, FailingAuditLog(no_sessions))
    item = inventory.adjust_stock("P", 4, reason="restock")

    assert item.quantity == 4
    assert "audit sink down" in caplog.text


def test_overlapping_sweeps_release_a_hold_once(session_factory, audit_log, inventory):
    stock(inventory, "P", 10)
    inventory.reserve("P", 3, reference="abandoned")
    inventory.reserve("P", 2, reference="live-checkout")
    for hold in inventory.repo.expired_holds(datetime.now(timezone.utc) + timedelta(days=1)):
        if hold.reference == "abandoned":
            hold.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
    inventory.commit()

    first = InventoryService(session_factory(), audit_log)
    second = InventoryService(session_factory(), audit_log)
    stale = first.repo.expired_holds(datetime.now(timezone.utc))
    assert [h.reference for h in stale] == ["abandoned"]

    # the second sweep finishes while the first still works from its earlier read
    assert second.release_expired_holds() == 1
    with patch.object(first.repo, "expired_holds", return_value=stale):
        assert first.release_expired_holds() == 0

    item = inventory.get_stock("P")
    assert (item.quantity, item.reserved, item.available) == (10, 2, 8)
    first.repo.db.close()
    second.repo.db.close()


def test_swept_hold_is_neither_debited_nor_released_again(inventory):
    stock(inventory, "P", 5)
    inventory.reserve("P", 3, reference="slow-checkout")
    inventory.release_expired_holds(datetime.now(timezone.utc) + timedelta(days=1))
    inventory.reserve("P", 4, reference="other-checkout")

    with pytest.raises(InsufficientStockError):
        inventory.commit_reservation("P", 3, reference="slow-checkout")
    inventory.rollback()
    inventory.release("P", 3, reference="slow-checkout")

    item = inventory.get_stock("P")
    assert (item.quantity, item.reserved, item.available) == (5, 4, 1)
    assert inventory.repo.count_holds(reference="other-checkout") == 1
