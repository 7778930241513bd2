"""JSON API routes.

Authentication happens upstream: the identity provider forwards the caller's
account id in the ``X-Actor-Id`` header, and ``get_actor`` turns it into an
explicit ``Actor`` handed to every service call. Domain errors raised by the
services are translated to HTTP responses in ``main``.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from database import get_db
from exceptions import AuthenticationRequiredError, PermissionDeniedError, UnknownAccountError
from models import (
    Account,
    AccountCreate,
    AccountStatusUpdate,
    Actor,
    CartItem,
    CheckoutRequest,
    CheckoutResult,
    Order,
    OrderStatusUpdate,
    Product,
    ProductCreate,
    ProductQuery,
    Review,
    ReviewCreate,
    SecurityEvent,
    TrustAdjustment,
    TrustHistoryEntry,
    TrustSummary,
    VendorCheckout,
)
from services import account_service, catalog_service, order_service, policy, review_service, security_log

API_PREFIX = "/api/v1"
SIGNUP_PATH = API_PREFIX + "/accounts"


async def get_optional_actor(
    request: Request,
    x_actor_id: Optional[str] = Header(default=None),
    db: AsyncIOMotorDatabase = Depends(get_db),
) -> Optional[Actor]:
    """Resolve the caller when an actor id was forwarded, else None."""
    if not x_actor_id:
        return None
    try:
        return await account_service.resolve_actor(db, x_actor_id)
    except UnknownAccountError:
        # A newly signed-up identity has no account until it registers
        if request.method == "POST" and request.url.path == SIGNUP_PATH:
            return None
        raise


async def route_guard(request: Request, actor: Optional[Actor] = Depends(get_optional_actor)) -> None:
    """Apply the route policy to every API path (/vendor/..., /admin/..., /checkout/...)."""
    path = request.url.path[len(API_PREFIX):]
    if policy.can_access_route(actor.role if actor else None, path):
        return
    if actor is None:
        raise AuthenticationRequiredError("Authentication required")
    raise PermissionDeniedError("You don't have permission to access this resource")


router = APIRouter(prefix=API_PREFIX, dependencies=[Depends(route_guard)])


async def get_actor(actor: Optional[Actor] = Depends(get_optional_actor)) -> Actor:
    if actor is None:
        raise AuthenticationRequiredError("Authentication required")
    return actor


# --- Accounts ---
@router.post("/accounts", response_model=Account, status_code=201)
async def register(
    payload: AccountCreate,
    x_actor_id: Optional[str] = Header(default=None),
    actor: Optional[Actor] = Depends(get_optional_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
) -> Account:
    """Create the marketplace account for a newly signed-up identity."""
    if x_actor_id and actor is None and x_actor_id != payload.id:
        raise PermissionDeniedError("Accounts can only be registered for the signed-in identity")
    return await account_service.register_account(db, payload, actor)


@router.get("/accounts/me", response_model=Account)
async def me(actor: Actor = Depends(get_actor), db: AsyncIOMotorDatabase = Depends(get_db)) -> Account:
    return await account_service.get_account(db, actor.id)


@router.get("/accounts/{account_id}/trust", response_model=TrustSummary)
async def account_trust(account_id: str, db: AsyncIOMotorDatabase = Depends(get_db)) -> TrustSummary:
    """Public trust badge data for an account."""
    return account_service.trust_summary(await account_service.get_account(db, account_id))


# --- Catalog ---
@router.get("/products", response_model=List[Product])
async def products(
    q: Optional[str] = None,
    category: str = "all",
    in_stock: bool = False,
    on_sale: bool = False,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    min_trust: float = Query(default=0, ge=0, le=5),
    sort: str = "newest",
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    db: AsyncIOMotorDatabase = Depends(get_db),
) -> List[Product]:
    """Search products; ``min_trust=0`` disables the trust filter."""
    params = ProductQuery(
        q=q,
        category=category,
        in_stock=in_stock,
        on_sale=on_sale,
        min_price=min_price,
        max_price=max_price,
        min_trust=min_trust,
        sort=sort,
        limit=limit,
    )
    return await catalog_service.list_products(db, params)


@router.post("/vendor/products", response_model=Product, status_code=201)
async def create_product(
    payload: ProductCreate, actor: Actor = Depends(get_actor), db: AsyncIOMotorDatabase = Depends(get_db)
) -> Product:
    return await catalog_service.create_product(db, actor, payload)


@router.get("/vendor/products", response_model=List[Product])
async def vendor_products(actor: Actor = Depends(get_actor), db: AsyncIOMotorDatabase = Depends(get_db)) -> List[Product]:
    return await catalog_service.list_vendor_products(db, actor)


# --- Orders ---
@router.get("/vendor/orders", response_model=List[Order])
async def vendor_orders(actor: Actor = Depends(get_actor), db: AsyncIOMotorDatabase = Depends(get_db)) -> List[Order]:
    return await order_service.list_vendor_orders(db, actor)


@router.patch("/vendor/orders/{order_id}/status", response_model=Order)
@router.patch("/admin/orders/{order_id}/status", response_model=Order)
async def update_order_status(
    order_id: str,
    payload: OrderStatusUpdate,
    actor: Actor = Depends(get_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
) -> Order:
    return await order_service.update_order_status(db, actor, order_id, payload.status)


@router.post("/checkout/preview", response_model=List[VendorCheckout])
async def checkout_preview(
    items: List[CartItem], actor: Actor = Depends(get_actor), db: AsyncIOMotorDatabase = Depends(get_db)
) -> List[VendorCheckout]:
    """Per-vendor trust badges and low-trust warnings for the cart."""
    return await order_service.checkout_preview(db, actor, items)


@router.post("/orders", response_model=CheckoutResult, status_code=201)
async def place_orders(
    payload: CheckoutRequest, actor: Actor = Depends(get_actor), db: AsyncIOMotorDatabase = Depends(get_db)
) -> CheckoutResult:
    return await order_service.place_orders(db, actor, payload)


@router.get("/orders", response_model=List[Order])
async def my_orders(actor: Actor = Depends(get_actor), db: AsyncIOMotorDatabase = Depends(get_db)) -> List[Order]:
    return await order_service.list_customer_orders(db, actor)


@router.get("/orders/{order_id}", response_model=Order)
async def order_detail(
    order_id: str, actor: Actor = Depends(get_actor), db: AsyncIOMotorDatabase = Depends(get_db)
) -> Order:
    return await order_service.get_order(db, actor, order_id)


# --- Reviews ---
@router.post("/orders/{order_id}/review", response_model=Review, status_code=201)
async def review_order(
    order_id: str,
    payload: ReviewCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
) -> Review:
    """Review a delivered order; updates the vendor's trust score."""
    return await review_service.submit_review(db, actor, order_id, payload)


@router.get("/vendors/{vendor_id}/reviews", response_model=List[Review])
async def vendor_reviews(
    vendor_id: str,
    limit: int = Query(default=50, ge=1, le=100),
    db: AsyncIOMotorDatabase = Depends(get_db),
) -> List[Review]:
    return await review_service.list_vendor_reviews(db, vendor_id, limit)


# --- Admin ---
@router.get("/admin/vendors", response_model=List[TrustSummary])
async def admin_vendors(
    min_trust: float = Query(default=0, ge=0, le=5),
    actor: Actor = Depends(get_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
) -> List[TrustSummary]:
    """Vendors for trust management, most trusted first."""
    return [account_service.trust_summary(v) for v in await account_service.list_vendors(db, min_trust)]


@router.post("/admin/vendors/{vendor_id}/trust", response_model=TrustSummary)
async def admin_adjust_trust(
    vendor_id: str,
    payload: TrustAdjustment,
    actor: Actor = Depends(get_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
) -> TrustSummary:
    return account_service.trust_summary(await account_service.adjust_trust(db, actor, vendor_id, payload.delta))


@router.patch("/admin/accounts/{account_id}/status", response_model=Account)
async def admin_account_status(
    account_id: str,
    payload: AccountStatusUpdate,
    actor: Actor = Depends(get_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
) -> Account:
    return await account_service.set_account_status(db, actor, account_id, payload.status)


@router.get("/admin/accounts/{account_id}/trust-history", response_model=List[TrustHistoryEntry])
async def admin_trust_history(
    account_id: str, actor: Actor = Depends(get_actor), db: AsyncIOMotorDatabase = Depends(get_db)
) -> List[TrustHistoryEntry]:
    return (await account_service.get_account(db, account_id)).trust_history


@router.get("/admin/accounts/{account_id}/events", response_model=List[SecurityEvent])
async def admin_security_events(
    account_id: str, actor: Actor = Depends(get_actor), db: AsyncIOMotorDatabase = Depends(get_db)
) -> List[SecurityEvent]:
    return await security_log.list_events(db, account_id)
