# checkout/data/seed.py
from checkout.data.database import SessionLocal
from checkout.data.models.inventory import InventoryModel
from checkout.repos.inventory_repo import AuditLog
from checkout.services.inventory_service import InventoryService
from checkout.utils.settings import DEFAULT_LOW_STOCK_THRESHOLD

#matches the catalog of the dev product service
INITIAL_STOCK = {
    "1": 25,
    "2": 100,
    "3": 5,
}


def seed(session_factory=SessionLocal):
    db = session_factory()
    try:
        # not forcing: only seed if empty
        if db.query(InventoryModel).first():
            return
        inventory = InventoryService(db, AuditLog(session_factory), default_threshold=DEFAULT_LOW_STOCK_THRESHOLD)
        for product_id, quantity in INITIAL_STOCK.items():
            inventory.adjust_stock(product_id, quantity, reason="restock", reference="seed", actor="seed")
    finally:
        db.close()


if __name__ == "__main__":
    seed()
