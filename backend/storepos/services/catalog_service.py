# Overview: Read-only catalog collaborator; current price and stock by product/variant.

from __future__ import annotations

from ..extensions import db
from ..models import Product, ProductVariant
from ..errors import NotFoundError


def get_product(product_id: int, *, require_active: bool = True) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    if require_active and not product.is_active:
        raise NotFoundError(f"Product {product_id} is not available", details={"product_id": product_id})
    return product


def get_variant(product_id: int, variant_id: int, *, require_active: bool = True) -> ProductVariant:
    variant = db.session.get(ProductVariant, variant_id)
    if variant is None or variant.product_id != product_id:
        raise NotFoundError(
            f"Variant {variant_id} not found for product {product_id}",
            details={"product_id": product_id, "variant_id": variant_id},
        )
    if require_active and not variant.is_active:
        raise NotFoundError(
            f"Variant {variant_id} is not available",
            details={"product_id": product_id, "variant_id": variant_id},
        )
    return variant


def get_unit_price_cents(product_id: int, variant_id: int | None = None) -> int:
    """Current catalog price. A variant without its own price sells at the product price."""
    product = get_product(product_id)
    if variant_id is not None:
        variant = get_variant(product_id, variant_id)
        if variant.price_cents is not None:
            return variant.price_cents
    return product.price_cents


def get_stock_quantity(product_id: int, variant_id: int | None = None) -> int:
    """Current on-hand count, read straight from the table (not the identity map)."""
    if variant_id is not None:
        qty = (
            db.session.query(ProductVariant.stock_quantity)
            .filter_by(id=variant_id, product_id=product_id)
            .scalar()
        )
    else:
        qty = db.session.query(Product.stock_quantity).filter_by(id=product_id).scalar()
    if qty is None:
        raise NotFoundError(
            "Inventory item not found",
            details={"product_id": product_id, "variant_id": variant_id},
        )
    return int(qty)
