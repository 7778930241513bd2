"""Tests for services.catalog_service: product listing with trust filters."""

import pytest

from conftest import register
from exceptions import PermissionDeniedError
from models import ProductCreate, ProductQuery, Role, TrustTier
from services import account_service, catalog_service


async def _seed(db, admin, vendor):
    """Vendor-1 at 3.0 and a second vendor nudged up to 5.0."""
    star = await register(db, "vendor-2", Role.VENDOR, name="Star Bakery")
    await account_service.adjust_trust(db, admin, star.id, 1)
    await account_service.adjust_trust(db, admin, star.id, 1)
    await catalog_service.create_product(db, vendor, ProductCreate(name="Carrots", price=1.0, category="veg"))
    await catalog_service.create_product(
        db, vendor, ProductCreate(name="Kale", price=2.5, original_price=3.0, category="veg")
    )
    await catalog_service.create_product(db, star, ProductCreate(name="Sourdough", price=6.0, category="bakery"))
    await catalog_service.create_product(
        db, star, ProductCreate(name="Bagels", price=4.0, category="bakery", in_stock=False)
    )


@pytest.mark.asyncio
async def test_create_product_stamps_vendor_and_trust(db, vendor):
    product = await catalog_service.create_product(
        db, vendor, ProductCreate(name="Pears", price=2.0, category="fruit")
    )
    assert product.vendor_id == vendor.id
    assert product.vendor_name == "Green Farm"
    assert product.trust_score == 3.0
    assert product.trust_tier is TrustTier.MODERATE_TRUST
    assert product.trust_badge == "warning"
    assert product.on_sale is False


@pytest.mark.asyncio
async def test_customers_cannot_list_products(db, customer):
    with pytest.raises(PermissionDeniedError):
        await catalog_service.create_product(db, customer, ProductCreate(name="X", price=1.0, category="misc"))


@pytest.mark.asyncio
async def test_trust_filter_and_sort(db, admin, vendor):
    await _seed(db, admin, vendor)

    trusted = await catalog_service.list_products(db, ProductQuery(min_trust=4))
    assert {p.name for p in trusted} == {"Sourdough", "Bagels"}
    assert all(p.trust_tier is TrustTier.HIGHLY_TRUSTED for p in trusted)

    everything = await catalog_service.list_products(db, ProductQuery(min_trust=0))
    assert len(everything) == 4

    by_trust = await catalog_service.list_products(db, ProductQuery(sort="trust-high"))
    assert [p.trust_score for p in by_trust] == [5.0, 5.0, 3.0, 3.0]


@pytest.mark.asyncio
async def test_other_filters(db, admin, vendor):
    await _seed(db, admin, vendor)

    by_price = await catalog_service.list_products(db, ProductQuery(sort="price-low"))
    assert [p.name for p in by_price] == ["Carrots", "Kale", "Bagels", "Sourdough"]

    veg = await catalog_service.list_products(db, ProductQuery(category="veg", sort="name-desc"))
    assert [p.name for p in veg] == ["Kale", "Carrots"]

    assert [p.name for p in await catalog_service.list_products(db, ProductQuery(on_sale=True))] == ["Kale"]
    assert "Bagels" not in {p.name for p in await catalog_service.list_products(db, ProductQuery(in_stock=True))}

    ranged = await catalog_service.list_products(db, ProductQuery(min_price=2, max_price=5, sort="price-high"))
    assert [p.name for p in ranged] == ["Bagels", "Kale"]

    assert [p.name for p in await catalog_service.list_products(db, ProductQuery(q="sour"))] == ["Sourdough"]
    assert len(await catalog_service.list_products(db, ProductQuery(limit=2))) == 2


@pytest.mark.asyncio
async def test_vendor_products_follow_score_changes(db, admin, vendor, product):
    await account_service.adjust_trust(db, admin, vendor.id, -1)
    mine = await catalog_service.list_vendor_products(db, vendor)
    assert [p.id for p in mine] == [product.id]
    assert mine[0].trust_score == 2.0
    assert mine[0].trust_badge == "destructive"


def test_build_query_skips_trust_filter_at_zero():
    assert "trust_score" not in catalog_service.build_query(ProductQuery(min_trust=0))
    assert catalog_service.build_query(ProductQuery(min_trust=3))["trust_score"] == {"$gte": 3}
