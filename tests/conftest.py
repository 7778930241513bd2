import uuid

import httpx
import pytest_asyncio
from mongomock_motor import AsyncMongoMockClient

from database import get_db
from main import app
from models import AccountCreate, Actor, CartItem, CheckoutRequest, OrderStatus, ProductCreate, Role
from services import account_service, catalog_service, order_service


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory database for each test."""
    client = AsyncMongoMockClient()
    yield client[f"freshmart_test_{uuid.uuid4().hex}"]


async def register(db, account_id: str, role: Role, name: str | None = None) -> Actor:
    account = await account_service.register_account(
        db,
        AccountCreate(id=account_id, name=name or account_id.title(), email=f"{account_id}@example.com", role=role),
    )
    return Actor(id=account.id, role=account.role, name=account.name, email=account.email)


@pytest_asyncio.fixture
async def vendor(db) -> Actor:
    return await register(db, "vendor-1", Role.VENDOR, name="Green Farm")


@pytest_asyncio.fixture
async def customer(db) -> Actor:
    return await register(db, "customer-1", Role.CUSTOMER, name="Alice")


@pytest_asyncio.fixture
async def admin(db) -> Actor:
    return await register(db, "admin-1", Role.ADMIN, name="Root")


@pytest_asyncio.fixture
async def product(db, vendor):
    return await catalog_service.create_product(
        db, vendor, ProductCreate(name="Organic Apples", price=3.5, category="fruit")
    )


async def delivered_order(db, customer: Actor, vendor: Actor, product_id: str, quantity: int = 1):
    """Place an order and walk it through to delivered."""
    result = await order_service.place_orders(
        db,
        customer,
        CheckoutRequest(items=[CartItem(product_id=product_id, quantity=quantity)], shipping_address="1 Main St"),
    )
    order = result.orders[0]
    for status in (OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED):
        order = await order_service.update_order_status(db, vendor, order.id, status)
    return order


@pytest_asyncio.fixture
async def client(db):
    app.dependency_overrides[get_db] = lambda: db
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
