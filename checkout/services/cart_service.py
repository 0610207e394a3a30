from datetime import datetime, timezone
from typing import Dict, Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from checkout.data.models.cart import CartModel
from checkout.data.models.cart_item import CartItemModel
from checkout.domain.errors import ValidationError, NotFoundError, ConcurrencyError
from checkout.repos.cart_repo import CartRepo
from checkout.utils.retry import conflict_retry
from checkout.utils.logging import get_logger

logger = get_logger(__name__)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class CartService:
    """
    Cart store, one cart per owner.
    commands (add, remove, update, clear) modify state with optimistic locking on cart.version
    query (get) reads only, apart from creating the empty cart on first interaction
    """

    def __init__(self, db: Session):
        self.repo = CartRepo(db)

    #query
    def get_cart(self, owner_id: str) -> Dict[str, Any]:
        cart = self._get_or_create(owner_id)
        items = self.get_items(owner_id)

        return {
            "owner_id": cart.owner_id,
            "items": [
                {
                    "product_id": i.product_id,
                    "quantity": i.quantity,
                }
                for i in items
            ],
            "total_items": sum(i.quantity for i in items),
            "version": cart.version,
            "updated_at": cart.updated_at,
        }

    @staticmethod
    def total_item_count(cart: Dict[str, Any]) -> int:
        return sum(i["quantity"] for i in cart["items"])

    @staticmethod
    def is_empty(cart: Dict[str, Any]) -> bool:
        return len(cart["items"]) == 0

    #commands
    @conflict_retry()
    def add_item(self, owner_id: str, product_id: str, quantity: int) -> Dict[str, Any]:
        if not _is_int(quantity) or quantity <= 0:
            raise ValidationError("Quantity must be a positive integer")
        if not product_id or not str(product_id).strip():
            raise ValidationError("Product ID is required")

        cart = self._get_or_create(owner_id)
        existing_item = self.repo.get_cart_item(owner_id, product_id)

        if existing_item:
            logger.info(
                f"Product {product_id} already in cart of {owner_id}, quantity "
                f"{existing_item.quantity} -> {existing_item.quantity + quantity}"
            )
            existing_item.quantity += quantity
        else:
            logger.info(f"Adding product {product_id} to cart of {owner_id}")
            self.repo.add_cart_item(
                CartItemModel(
                    owner_id=owner_id,
                    product_id=product_id,
                    quantity=quantity,
                )
            )

        self._bump_version(cart)
        return self.get_cart(owner_id)

    @conflict_retry()
    def remove_item(self, owner_id: str, product_id: str) -> Dict[str, Any]:
        cart = self._get_or_create(owner_id)

        if self.repo.delete_cart_item(owner_id, product_id) == 0:
            #nothing to remove
            self.repo.rollback()
            return self.get_cart(owner_id)

        logger.info(f"Removed product {product_id} from cart of {owner_id}")
        self._bump_version(cart)
        return self.get_cart(owner_id)

    @conflict_retry()
    def update_quantity(self, owner_id: str, product_id: str, quantity: int) -> Dict[str, Any]:
        if not _is_int(quantity):
            raise ValidationError("Quantity must be an integer")

        cart = self._get_or_create(owner_id)
        item = self.repo.get_cart_item(owner_id, product_id)

        if not item:
            raise NotFoundError(f"Product {product_id} is not in the cart")

        if quantity <= 0:
            self.repo.delete_cart_item(owner_id, product_id)
            logger.info(f"Quantity {quantity} for {product_id}, removed from cart of {owner_id}")
        else:
            item.quantity = quantity
            logger.info(f"Set quantity of {product_id} in cart of {owner_id} to {quantity}")

        self._bump_version(cart)
        return self.get_cart(owner_id)

    @conflict_retry()
    def clear(self, owner_id: str) -> Dict[str, Any]:
        cart = self._get_or_create(owner_id)
        self.clear_items(cart, commit=True)
        logger.info(f"Cleared cart of {owner_id}")
        return self.get_cart(owner_id)

    def clear_items(self, cart: CartModel, commit: bool = False) -> None:
        """Empty the cart but keep the cart row; can join the caller's transaction."""
        self.repo.delete_cart_items(cart.owner_id)
        self._bump_version(cart, commit=commit)

    def load(self, owner_id: str) -> CartModel | None:
        return self.repo.get_cart(owner_id)

    def get_items(self, owner_id: str) -> list[CartItemModel]:
        return self.repo.get_cart_items(owner_id)

    def _get_or_create(self, owner_id: str) -> CartModel:
        if not owner_id or not str(owner_id).strip():
            raise ValidationError("Owner ID is required")

        cart = self.repo.get_cart(owner_id)
        if cart:
            return cart

        now = datetime.now(timezone.utc)
        try:
            created = self.repo.create_cart(
                CartModel(owner_id=owner_id, version=1, created_at=now, updated_at=now)
            )
        except IntegrityError:
            #another session created it in the meantime
            self.repo.rollback()
            return self.repo.get_cart(owner_id)

        logger.info(f"Created empty cart for {owner_id}")
        return created

    def _bump_version(self, cart: CartModel, commit: bool = True) -> None:
        # Optimistic locking
        # UPDATE carts SET version = 2 WHERE owner_id = 'u1' AND version = 1
        old_version = cart.version
        rowcount = self.repo.update_cart_version(
            owner_id=cart.owner_id,
            old_version=old_version,
            new_data={
                "version": old_version + 1,
                "updated_at": datetime.now(timezone.utc),
            },
        )

        if rowcount == 0:
            self.repo.rollback()
            raise ConcurrencyError(f"Cart of {cart.owner_id} was modified by another operation")

        if commit:
            self.repo.commit()
