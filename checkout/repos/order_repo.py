# checkout/repos/order_repo.py
from sqlalchemy import select, func, update
from sqlalchemy.orm import Session, selectinload

from checkout.data.models.order import OrderModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def create_order(self, order: OrderModel) -> OrderModel:
        self.add_order(order)
        self.db.commit()
        self.db.refresh(order)
        return order

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.get(OrderModel, order_id, options=[selectinload(OrderModel.items)])

    def compare_and_set_status(self, order_id: int, old_status: str, new_status: str, updated_at) -> int:
        #UPDATE orders SET status = :new WHERE id = :id AND status = :old
        res = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.status == old_status)
            .values(status=new_status, updated_at=updated_at)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    def list_by_owner(self, owner_id: str) -> list[OrderModel]:
        return list(
            self.db.execute(
                select(OrderModel)
                .options(selectinload(OrderModel.items))
                .where(OrderModel.owner_id == owner_id)
                .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            ).scalars()
        )

    def list_by_status(self, status: str | None = None) -> list[OrderModel]:
        stmt = select(OrderModel).options(selectinload(OrderModel.items)).order_by(OrderModel.id)
        if status is not None:
            stmt = stmt.where(OrderModel.status == status)
        return list(self.db.execute(stmt).scalars())

    def count_by_status(self) -> dict[str, int]:
        rows = self.db.execute(
            select(OrderModel.status, func.count(OrderModel.id)).group_by(OrderModel.status)
        ).all()
        return {status: count for status, count in rows}

    def delivered_revenue(self):
        return self.db.execute(
            select(func.coalesce(func.sum(OrderModel.total), 0)).where(OrderModel.status == "delivered")
        ).scalar_one()

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
