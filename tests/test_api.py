"""End-to-end tests through the HTTP API and HTML pages."""

import pytest


def as_actor(actor_id: str) -> dict:
    return {"X-Actor-Id": actor_id}


async def _signup(client, account_id, role, name=None):
    resp = await client.post(
        "/api/v1/accounts",
        json={"id": account_id, "name": name or account_id.title(), "email": f"{account_id}@example.com", "role": role},
        headers=as_actor("admin-1") if role == "admin" and account_id != "admin-1" else {},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _deliver(client, order_id, vendor_id="vendor-1"):
    for status in ("processing", "shipped", "delivered"):
        resp = await client.patch(
            f"/api/v1/vendor/orders/{order_id}/status", json={"status": status}, headers=as_actor(vendor_id)
        )
        assert resp.status_code == 200, resp.text
    return resp.json()


@pytest.mark.asyncio
async def test_full_review_flow(client):
    await _signup(client, "admin-1", "admin")
    vendor = await _signup(client, "vendor-1", "vendor", name="Green Farm")
    await _signup(client, "customer-1", "customer", name="Alice")
    assert vendor["trust_score"] == 3.0

    resp = await client.post(
        "/api/v1/vendor/products",
        json={"name": "Tomatoes", "price": 2.0, "category": "veg"},
        headers=as_actor("vendor-1"),
    )
    assert resp.status_code == 201
    product = resp.json()
    assert product["trust_badge"] == "warning"

    resp = await client.post(
        "/api/v1/checkout/preview",
        json=[{"product_id": product["id"], "quantity": 2}],
        headers=as_actor("customer-1"),
    )
    assert resp.json()[0]["label"] == "Moderate Trust"

    resp = await client.post(
        "/api/v1/orders",
        json={"items": [{"product_id": product["id"], "quantity": 2}], "shipping_address": "1 Main St"},
        headers=as_actor("customer-1"),
    )
    assert resp.status_code == 201
    order = resp.json()["orders"][0]
    assert order["vendor_trust_score"] == 3.0
    assert order["total_amount"] == 4.0

    await _deliver(client, order["id"])

    resp = await client.post(
        f"/api/v1/orders/{order['id']}/review",
        json={"rating": 5, "text": "Fresh and ripe"},
        headers=as_actor("customer-1"),
    )
    assert resp.status_code == 201, resp.text

    trust = (await client.get("/api/v1/accounts/vendor-1/trust")).json()
    assert trust["trust_score"] == 5.0
    assert trust["tier"] == "HighlyTrusted"
    assert trust["review_count"] == 1

    resp = await client.post(
        f"/api/v1/orders/{order['id']}/review",
        json={"rating": 1, "text": "again"},
        headers=as_actor("customer-1"),
    )
    assert resp.status_code == 409
    assert resp.json()["error"] == "ReviewNotAllowedError"

    detail = (await client.get(f"/api/v1/orders/{order['id']}", headers=as_actor("customer-1"))).json()
    assert detail["reviewed"] is True
    assert detail["vendor_trust_score"] == 3.0

    reviews = (await client.get("/api/v1/vendors/vendor-1/reviews")).json()
    assert [r["text"] for r in reviews] == ["Fresh and ripe"]

    listed = (await client.get("/api/v1/products", params={"min_trust": 4})).json()
    assert [p["name"] for p in listed] == ["Tomatoes"]


@pytest.mark.asyncio
async def test_invalid_rating_is_422(client):
    await _signup(client, "vendor-1", "vendor")
    await _signup(client, "customer-1", "customer")
    product = (
        await client.post(
            "/api/v1/vendor/products", json={"name": "Eggs", "price": 3.0, "category": "dairy"}, headers=as_actor("vendor-1")
        )
    ).json()
    order = (
        await client.post(
            "/api/v1/orders",
            json={"items": [{"product_id": product["id"]}], "shipping_address": "2 Elm St"},
            headers=as_actor("customer-1"),
        )
    ).json()["orders"][0]
    await _deliver(client, order["id"])

    resp = await client.post(
        f"/api/v1/orders/{order['id']}/review", json={"rating": 6, "text": "wow"}, headers=as_actor("customer-1")
    )
    assert resp.status_code == 422
    assert resp.json()["error"] == "InvalidRatingError"

    resp = await client.post(
        f"/api/v1/orders/{order['id']}/review", json={"rating": 4, "text": "   "}, headers=as_actor("customer-1")
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_admin_trust_management(client):
    await _signup(client, "admin-1", "admin")
    await _signup(client, "vendor-1", "vendor", name="Green Farm")

    resp = await client.post("/api/v1/admin/vendors/vendor-1/trust", json={"delta": -1}, headers=as_actor("admin-1"))
    assert resp.status_code == 200
    assert resp.json()["trust_score"] == 2.0
    assert resp.json()["low_trust_warning"] is True

    resp = await client.post("/api/v1/admin/vendors/vendor-1/trust", json={"delta": 3}, headers=as_actor("admin-1"))
    assert resp.status_code == 422

    vendors = (await client.get("/api/v1/admin/vendors", headers=as_actor("admin-1"))).json()
    assert [(v["account_id"], v["badge"]) for v in vendors] == [("vendor-1", "destructive")]

    history = (await client.get("/api/v1/admin/accounts/vendor-1/trust-history", headers=as_actor("admin-1"))).json()
    assert [h["score"] for h in history] == [3.0, 2.0]

    events = (await client.get("/api/v1/admin/accounts/vendor-1/events", headers=as_actor("admin-1"))).json()
    assert {e["event"] for e in events} == {"account_created", "trust_score_updated"}


@pytest.mark.asyncio
async def test_access_control(client):
    await _signup(client, "admin-1", "admin")
    await _signup(client, "vendor-1", "vendor")
    await _signup(client, "customer-1", "customer")

    assert (await client.get("/api/v1/orders")).status_code == 401
    assert (await client.get("/api/v1/admin/vendors")).status_code == 401
    assert (await client.get("/api/v1/accounts/me", headers=as_actor("ghost"))).status_code == 404

    resp = await client.get("/api/v1/admin/vendors", headers=as_actor("vendor-1"))
    assert resp.status_code == 403
    resp = await client.get("/api/v1/vendor/products", headers=as_actor("customer-1"))
    assert resp.status_code == 403
    resp = await client.post(
        "/api/v1/accounts",
        json={"id": "admin-2", "name": "Mallory", "email": "m@example.com", "role": "admin"},
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_locked_account_is_rejected(client):
    await _signup(client, "admin-1", "admin")
    await _signup(client, "customer-1", "customer")

    resp = await client.patch(
        "/api/v1/admin/accounts/customer-1/status", json={"status": "locked"}, headers=as_actor("admin-1")
    )
    assert resp.json()["account_status"] == "locked"

    resp = await client.get("/api/v1/orders", headers=as_actor("customer-1"))
    assert resp.status_code == 403
    assert "locked" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_duplicate_signup_conflicts(client):
    await _signup(client, "customer-1", "customer")
    resp = await client.post(
        "/api/v1/accounts",
        json={"id": "customer-1", "name": "Again", "email": "again@example.com", "role": "customer"},
    )
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_product_page_renders_badges(client):
    await _signup(client, "vendor-1", "vendor", name="Green Farm")
    await client.post(
        "/api/v1/vendor/products",
        json={"name": "Basil", "price": 1.5, "category": "herbs"},
        headers=as_actor("vendor-1"),
    )
    resp = await client.get("/")
    assert resp.status_code == 200
    assert "Basil" in resp.text
    assert "badge-warning" in resp.text

    resp = await client.get("/", params={"min_trust": 4})
    assert "Basil" not in resp.text


@pytest.mark.asyncio
async def test_admin_dashboard_requires_admin(client):
    await _signup(client, "admin-1", "admin")
    await _signup(client, "vendor-1", "vendor", name="Green Farm")

    resp = await client.get("/admin/dashboard", headers=as_actor("vendor-1"))
    assert resp.status_code == 303
    assert resp.headers["location"] == "/"

    resp = await client.get("/admin/dashboard", headers=as_actor("admin-1"))
    assert resp.status_code == 200
    assert "Green Farm" in resp.text
    assert "Moderate Trust" in resp.text


@pytest.mark.asyncio
async def test_health(client):
    assert (await client.get("/health")).json()["status"] == "ok"


@pytest.mark.asyncio
async def test_signup_with_own_forwarded_identity(client):
    resp = await client.post(
        "/api/v1/accounts",
        json={"id": "cust-9", "name": "Nina", "email": "nina@example.com", "role": "customer"},
        headers=as_actor("cust-9"),
    )
    assert resp.status_code == 201, resp.text
    assert resp.json()["id"] == "cust-9"

    me = await client.get("/api/v1/accounts/me", headers=as_actor("cust-9"))
    assert me.json()["trust_score"] == 4.0


@pytest.mark.asyncio
async def test_signup_for_another_identity_is_refused(client):
    resp = await client.post(
        "/api/v1/accounts",
        json={"id": "cust-9", "name": "Nina", "email": "nina@example.com", "role": "customer"},
        headers=as_actor("cust-10"),
    )
    assert resp.status_code == 403
    assert (await client.get("/api/v1/accounts/cust-9/trust")).status_code == 404
    # unknown identities are still rejected everywhere else
    assert (await client.get("/api/v1/orders", headers=as_actor("cust-10"))).status_code == 404


@pytest.mark.asyncio
async def test_dashboard_buttons_adjust_vendor_trust(client):
    await _signup(client, "admin-1", "admin")
    await _signup(client, "vendor-1", "vendor", name="Green Farm")

    page = await client.get("/admin/dashboard", headers=as_actor("admin-1"))
    assert 'action="/admin/dashboard/vendors/vendor-1/trust?delta=1"' in page.text

    resp = await client.post("/admin/dashboard/vendors/vendor-1/trust?delta=1", headers=as_actor("admin-1"))
    assert resp.status_code == 303
    assert resp.headers["location"] == "/admin/dashboard"
    assert (await client.get("/api/v1/accounts/vendor-1/trust")).json()["trust_score"] == 4.0

    resp = await client.post("/admin/dashboard/vendors/vendor-1/trust?delta=-1", headers=as_actor("vendor-1"))
    assert resp.status_code == 303
    assert resp.headers["location"] == "/"
    assert (await client.get("/api/v1/accounts/vendor-1/trust")).json()["trust_score"] == 4.0

    resp = await client.post("/admin/dashboard/vendors/vendor-1/trust?delta=2", headers=as_actor("admin-1"))
    assert resp.status_code == 422
