# checkout/repos/cart_repo.py
from sqlalchemy import select, update, delete
from sqlalchemy.orm import Session

from checkout.data.models.cart import CartModel
from checkout.data.models.cart_item import CartItemModel


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_cart(self, owner_id: str) -> CartModel | None:
        return self.db.get(CartModel, owner_id)

    def create_cart(self, cart: CartModel) -> CartModel:
        self.db.add(cart)
        self.db.commit()
        self.db.refresh(cart)
        return cart

    def get_cart_items(self, owner_id: str) -> list[CartItemModel]:
        return list(
            self.db.execute(
                select(CartItemModel)
                .where(CartItemModel.owner_id == owner_id)
                .order_by(CartItemModel.id)
            ).scalars()
        )

    def get_cart_item(self, owner_id: str, product_id: str) -> CartItemModel | None:
        return self.db.execute(
            select(CartItemModel).where(
                CartItemModel.owner_id == owner_id,
                CartItemModel.product_id == product_id,
            )
        ).scalar_one_or_none()

    def add_cart_item(self, item: CartItemModel) -> None:
        self.db.add(item)
        self.db.flush()

    def delete_cart_item(self, owner_id: str, product_id: str) -> int:
        res = self.db.execute(
            delete(CartItemModel).where(
                CartItemModel.owner_id == owner_id,
                CartItemModel.product_id == product_id,
            )
        )
        return res.rowcount

    def delete_cart_items(self, owner_id: str) -> int:
        res = self.db.execute(delete(CartItemModel).where(CartItemModel.owner_id == owner_id))
        return res.rowcount

    def update_cart_version(self, owner_id: str, old_version: int, new_data: dict) -> int:
        #UPDATE carts SET version = old + 1 WHERE owner_id = :id AND version = :old
        res = self.db.execute(
            update(CartModel)
            .where(CartModel.owner_id == owner_id, CartModel.version == old_version)
            .values(**new_data)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
