"""Web UI routes for HTML rendering.

These endpoints render the storefront's product listing, with trust badges
and the trust filter, and the admin trust dashboard using Jinja2. Access to
pages goes through the same route policy as the API.
"""
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from motor.motor_asyncio import AsyncIOMotorDatabase

import config
from database import get_db
from models import Actor, ProductQuery
from routes.api import get_optional_actor
from services import account_service, catalog_service, policy

router = APIRouter()
templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))

SORT_OPTIONS = {
    "newest": "Newest",
    "price-low": "Price: Low to High",
    "price-high": "Price: High to Low",
    "name-asc": "Name: A to Z",
    "trust-high": "Trust Score: High to Low",
}


@router.get("/", response_class=HTMLResponse)
async def index(
    request: Request,
    q: Optional[str] = None,
    category: str = "all",
    min_trust: int = Query(default=0, ge=0, le=5),
    sort: str = "newest",
    actor: Optional[Actor] = Depends(get_optional_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """Render the product listing with optional search, category and trust filters."""
    params = ProductQuery(q=q, category=category, min_trust=min_trust, sort=sort)
    results = await catalog_service.list_products(db, params)
    return templates.TemplateResponse(
        request,
        "products.html",
        {
            "name": config.STORE_NAME,
            "q": q or "",
            "category": category,
            "min_trust": min_trust,
            "sort": sort,
            "sort_options": SORT_OPTIONS,
            "results": results,
            "actor": actor,
        },
    )


@router.get("/admin/dashboard", response_class=HTMLResponse)
async def admin_dashboard(
    request: Request,
    min_trust: int = Query(default=0, ge=0, le=5),
    actor: Optional[Actor] = Depends(get_optional_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """Vendor trust management table; non-admins are sent back to the store."""
    if not policy.can_access_route(actor.role if actor else None, request.url.path):
        return RedirectResponse("/", status_code=303)
    vendors = [account_service.trust_summary(v) for v in await account_service.list_vendors(db, min_trust)]
    return templates.TemplateResponse(
        request,
        "admin_dashboard.html",
        {"name": config.STORE_NAME, "vendors": vendors, "min_trust": min_trust, "actor": actor},
    )


@router.post("/admin/dashboard/vendors/{vendor_id}/trust")
async def admin_adjust_trust(
    request: Request,
    vendor_id: str,
    delta: int = Query(...),
    actor: Optional[Actor] = Depends(get_optional_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """The dashboard's -/+ buttons; delta travels in the query string."""
    if not policy.can_access_route(actor.role if actor else None, request.url.path):
        return RedirectResponse("/", status_code=303)
    await account_service.adjust_trust(db, actor, vendor_id, delta)
    return RedirectResponse("/admin/dashboard", status_code=303)
