"""
Catalog reader — live variant state and address snapshots.

Checkout never trusts what the cart captured; it re-reads the variant
here inside the same unit of work that will reserve it.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select

from ordercore._types import Money
from ordercore.db import AddressRow, ProductRow, UnitOfWork, VariantRow


@dataclass(frozen=True, slots=True)
class VariantView:
    variant_id: str
    product_id: str
    product_name: str
    category_id: str | None
    size: str | None
    color: str | None
    price: Money
    discount_price: Money | None
    stock: int
    is_blocked: bool
    product_blocked: bool
    product_listed: bool

    @property
    def purchasable(self) -> bool:
        return not self.is_blocked and not self.product_blocked and self.product_listed

    @property
    def label(self) -> str:
        parts = [p for p in (self.size, self.color) if p]
        return f"{self.product_name} ({', '.join(parts)})" if parts else self.product_name


@dataclass(frozen=True, slots=True)
class AddressSnapshot:
    """Copied into the order; later edits to the address do not reach it."""

    full_name: str
    phone: str
    street: str
    city: str
    state: str
    country: str
    postal_code: str


class Catalog:
    async def variant(self, uow: UnitOfWork, variant_id: str) -> VariantView | None:
        stmt = (
            select(VariantRow, ProductRow)
            .join(ProductRow, ProductRow.id == VariantRow.product_id)
            .where(VariantRow.id == variant_id)
        )
        rows = await uow.fetch(stmt.execution_options(populate_existing=True))
        if not rows:
            return None
        variant, product = rows[0]
        return _to_view(variant, product)

    async def variants(
        self,
        uow: UnitOfWork,
        variant_ids: list[str],
    ) -> dict[str, VariantView]:
        if not variant_ids:
            return {}
        stmt = (
            select(VariantRow, ProductRow)
            .join(ProductRow, ProductRow.id == VariantRow.product_id)
            .where(VariantRow.id.in_(variant_ids))
        )
        rows = await uow.fetch(stmt.execution_options(populate_existing=True))
        return {v.id: _to_view(v, p) for v, p in rows}

    async def address(
        self,
        uow: UnitOfWork,
        user_id: str,
        address_id: str,
    ) -> AddressSnapshot | None:
        """Only the user's own addresses resolve."""
        row = await uow.one(
            select(AddressRow).where(
                AddressRow.id == address_id,
                AddressRow.user_id == user_id,
            )
        )
        if row is None:
            return None
        return AddressSnapshot(
            full_name=row.full_name,
            phone=row.phone,
            street=row.street,
            city=row.city,
            state=row.state,
            country=row.country or "India",
            postal_code=row.postal_code,
        )


def _to_view(variant: VariantRow, product: ProductRow) -> VariantView:
    return VariantView(
        variant_id=variant.id,
        product_id=product.id,
        product_name=product.name,
        category_id=product.category_id,
        size=variant.size,
        color=variant.color,
        price=variant.price,
        discount_price=variant.discount_price,
        stock=variant.stock,
        is_blocked=variant.is_blocked,
        product_blocked=product.is_blocked,
        product_listed=product.is_listed,
    )


__all__ = ("VariantView", "AddressSnapshot", "Catalog")
