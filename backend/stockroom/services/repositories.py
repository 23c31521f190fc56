# Overview: Read-only lookups the fulfillment core uses for catalog, warehouse and user data.

"""
The core never writes products, warehouses or users; it only needs to find
them by id and read a handful of attributes (is_active, prices, type, role,
commission_rate). These repositories are the whole contract.

Services take an optional repository argument so tests (or another storage
backend) can pass in-memory fakes; the defaults read through SQLAlchemy.
"""
from __future__ import annotations

from typing import Optional, Protocol

from ..errors import ProductNotFound, UserNotFound, WarehouseInactive, WarehouseNotFound
from ..extensions import db
from ..models import Product, User, Warehouse


class ProductRepository(Protocol):
    def find_by_id(self, product_id: int) -> Optional[Product]: ...


class WarehouseRepository(Protocol):
    def find_by_id(self, warehouse_id: int) -> Optional[Warehouse]: ...


class UserRepository(Protocol):
    def find_by_id(self, user_id: int) -> Optional[User]: ...


class SqlProductRepository:
    def find_by_id(self, product_id: int) -> Optional[Product]:
        return db.session.get(Product, product_id)


class SqlWarehouseRepository:
    def find_by_id(self, warehouse_id: int) -> Optional[Warehouse]:
        return db.session.get(Warehouse, warehouse_id)


class SqlUserRepository:
    def find_by_id(self, user_id: int) -> Optional[User]:
        return db.session.get(User, user_id)


class Repositories:
    """Bundle of the three lookups, passed through the service layer."""

    def __init__(
        self,
        products: ProductRepository | None = None,
        warehouses: WarehouseRepository | None = None,
        users: UserRepository | None = None,
    ):
        self.products = products or SqlProductRepository()
        self.warehouses = warehouses or SqlWarehouseRepository()
        self.users = users or SqlUserRepository()


def default_repositories() -> Repositories:
    return Repositories()


# ---------------------------------------------------------------------------
# Lookup helpers shared by the engines
# ---------------------------------------------------------------------------

def require_active_warehouse(repos: Repositories, warehouse_id: int, *, role: str = "warehouse") -> Warehouse:
    warehouse = repos.warehouses.find_by_id(warehouse_id)
    if warehouse is None:
        raise WarehouseNotFound(
            f"Warehouse {warehouse_id} not found",
            details={"warehouse_id": warehouse_id, "role": role},
        )
    if not warehouse.is_active:
        raise WarehouseInactive(
            f"Warehouse {warehouse_id} is inactive",
            details={"warehouse_id": warehouse_id, "role": role},
        )
    return warehouse


def require_active_products(repos: Repositories, product_ids) -> dict[int, Product]:
    """
    Look up every product; missing and inactive ones are reported together.
    """
    found: dict[int, Product] = {}
    failures = []
    for index, product_id in enumerate(product_ids):
        product = found.get(product_id) or repos.products.find_by_id(product_id)
        if product is None:
            failures.append({"line": index, "product_id": product_id, "reason": "not_found"})
        elif not product.is_active:
            failures.append({"line": index, "product_id": product_id, "reason": "inactive"})
        else:
            found[product_id] = product

    if failures:
        ids = ", ".join(str(f["product_id"]) for f in failures)
        raise ProductNotFound(f"Product(s) not found or inactive: {ids}", details={"items": failures})
    return found


def require_active_user(repos: Repositories, user_id: int, error_cls=UserNotFound) -> User:
    user = repos.users.find_by_id(user_id)
    if user is None or not user.is_active:
        raise error_cls(
            f"User {user_id} not found or inactive",
            details={"user_id": user_id},
        )
    return user
