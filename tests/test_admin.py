from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select

from dealfinder.models.analytic_event import AnalyticEvent
from dealfinder.models.business import Business
from dealfinder.models.promotion import Promotion
from dealfinder.models.refresh_token import RefreshToken
from dealfinder.models.user import User


def _register(client, *, email: str, name: str = "Some Person", role: str = "business") -> dict:
    res = client.post(
        "/api/auth/register",
        json={"name": name, "email": email, "password": "password123", "role": role},
    )
    assert res.status_code == 201, res.text
    return res.json()


def _auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _admin_headers(client) -> dict[str, str]:
    return _auth_headers(_register(client, email="admin@example.com", name="Admin Person")["access_token"])


def _create_business(client, token: str, name: str = "Gadget Hub", category: str = "electronics") -> str:
    res = client.post(
        "/api/business",
        data={"name": name, "description": "Phones and laptops", "category": category},
        headers=_auth_headers(token),
    )
    assert res.status_code == 201, res.text
    return res.json()["data"]["id"]


def _create_promotion(client, token: str, business_id: str, category: str = "electronics") -> str:
    res = client.post(
        "/api/promotions",
        data={
            "business": business_id,
            "title": "Phone case sale",
            "description": "All cases 30% off",
            "category": category,
            "type": "discount",
            "discountPercentage": "30",
            "redirectUrl": "https://gadgets.example.com/cases",
            "endDate": (datetime.now(timezone.utc) + timedelta(days=10)).isoformat(),
        },
        files=[("images", ("case.webp", b"RIFF-fake-webp", "image/webp"))],
        headers=_auth_headers(token),
    )
    assert res.status_code == 201, res.text
    return res.json()["data"]["id"]


def test_admin_routes_reject_non_admins(test_context):
    client, _ = test_context
    owner = _register(client, email="owner@example.com")["access_token"]

    assert client.get("/api/admin/dashboard").status_code == 401
    res = client.get("/api/admin/dashboard", headers=_auth_headers(owner))
    assert res.status_code == 403
    assert res.json()["error"]["code"] == "forbidden"
    assert client.get("/api/admin/users", headers=_auth_headers(owner)).status_code == 403


def test_dashboard_summary_counts(test_context):
    client, session_local = test_context
    admin = _admin_headers(client)
    owner = _register(client, email="owner@example.com")["access_token"]
    _register(client, email="shopper@example.com", role="user")
    business_id = _create_business(client, owner)
    promotion_id = _create_promotion(client, owner, business_id)

    with session_local() as db:
        expired = Promotion(
            business_id=business_id,
            title="Old sale",
            description="Already over",
            category="electronics",
            type="discount",
            images=["/uploads/promotions/old.png"],
            redirect_url="https://gadgets.example.com/old",
            tags=[],
            start_date=datetime.now(timezone.utc) - timedelta(days=10),
            end_date=datetime.now(timezone.utc) - timedelta(days=1),
        )
        db.add(expired)
        db.commit()

    for _ in range(4):
        client.get(f"/api/promotions/{promotion_id}")
    client.post(f"/api/promotions/{promotion_id}/click")

    res = client.get("/api/admin/dashboard", headers=admin)
    assert res.status_code == 200, res.text
    stats = res.json()["data"]
    assert stats["totalUsers"] == 3
    assert stats["newUsers"] == 3
    assert stats["totalBusinesses"] == 1
    assert stats["newBusinesses"] == 1
    assert stats["pendingBusinesses"] == 1
    assert stats["totalPromotions"] == 2
    assert stats["newPromotions"] == 2
    assert stats["activePromotions"] == 1
    assert stats["totalClicks"] == 1
    assert stats["totalImpressions"] == 4
    assert stats["averageConversionRate"] == 25.0


def test_admin_analytics_payload(test_context):
    client, _ = test_context
    admin = _admin_headers(client)
    owner = _register(client, email="owner@example.com")["access_token"]
    gadgets = _create_business(client, owner)
    bakery = _create_business(client, owner, name="Bakery", category="food")
    promotion_id = _create_promotion(client, owner, gadgets)
    _create_promotion(client, owner, gadgets)
    _create_promotion(client, owner, bakery, category="food")

    client.get(f"/api/promotions/{promotion_id}")
    client.get(f"/api/promotions/{promotion_id}")
    client.get(f"/api/promotions/{promotion_id}")
    client.post(f"/api/promotions/{promotion_id}/click")
    client.get("/api/promotions/search", params={"q": "case"})

    res = client.get("/api/admin/analytics", params={"period": 7}, headers=admin)
    assert res.status_code == 200, res.text
    data = res.json()["data"]

    assert len(data["dailyAnalytics"]) == 1
    assert data["dailyAnalytics"][0]["clicks"] == 1
    assert data["dailyAnalytics"][0]["searches"] == 1

    assert data["categoryDistribution"][0] == {
        "category": "electronics",
        "count": 2,
        "totalClicks": 1,
        "totalImpressions": 3,
    }
    assert data["categoryDistribution"][1]["category"] == "food"

    top = data["topBusinesses"][0]
    assert top["id"] == gadgets
    assert top["totalClicks"] == 1
    assert top["totalImpressions"] == 3
    assert top["totalPromotions"] == 2
    assert top["conversionRate"] == 1 / 3 * 100
    assert data["topBusinesses"][1]["id"] == bakery
    assert data["topBusinesses"][1]["conversionRate"] == 0

    assert client.get("/api/admin/analytics", params={"period": 0}, headers=admin).status_code == 400


def test_list_users_filters_and_searches(test_context):
    client, _ = test_context
    admin = _admin_headers(client)
    _register(client, email="owner@example.com", name="Olivia Owner")
    _register(client, email="shopper@example.com", name="Sam Shopper", role="user")

    everyone = client.get("/api/admin/users", headers=admin).json()
    assert everyone["count"] == 3
    assert everyone["totalPages"] == 1

    shoppers = client.get("/api/admin/users", params={"role": "user"}, headers=admin).json()
    assert [row["email"] for row in shoppers["data"]] == ["shopper@example.com"]

    by_name = client.get("/api/admin/users", params={"search": "olivia"}, headers=admin).json()
    assert [row["email"] for row in by_name["data"]] == ["owner@example.com"]

    by_email = client.get("/api/admin/users", params={"search": "SHOPPER@"}, headers=admin).json()
    assert [row["name"] for row in by_email["data"]] == ["Sam Shopper"]

    paged = client.get("/api/admin/users", params={"limit": 2, "page": 2}, headers=admin).json()
    assert paged["count"] == 1
    assert paged["totalPages"] == 2
    assert paged["currentPage"] == 2


def test_get_user_includes_owned_businesses(test_context):
    client, _ = test_context
    admin = _admin_headers(client)
    owner = _register(client, email="owner@example.com")
    business_id = _create_business(client, owner["access_token"])

    res = client.get(f"/api/admin/users/{owner['user']['id']}", headers=admin)
    assert res.status_code == 200, res.text
    data = res.json()["data"]
    assert data["user"]["email"] == "owner@example.com"
    assert [row["id"] for row in data["businesses"]] == [business_id]

    assert client.get("/api/admin/users/missing", headers=admin).status_code == 404


def test_update_user_fields_and_email_conflict(test_context):
    client, _ = test_context
    admin = _admin_headers(client)
    shopper = _register(client, email="shopper@example.com", role="user")
    _register(client, email="taken@example.com")

    res = client.put(
        f"/api/admin/users/{shopper['user']['id']}",
        json={"role": "business", "isVerified": True, "name": "Verified Seller"},
        headers=admin,
    )
    assert res.status_code == 200, res.text
    assert res.json()["message"] == "User updated successfully"
    data = res.json()["data"]
    assert data["role"] == "business"
    assert data["isVerified"] is True
    assert data["name"] == "Verified Seller"
    assert data["email"] == "shopper@example.com"

    conflict = client.put(
        f"/api/admin/users/{shopper['user']['id']}",
        json={"email": "TAKEN@example.com"},
        headers=admin,
    )
    assert conflict.status_code == 409
    assert conflict.json()["message"] == "Email already in use"


def test_delete_user_cascades_to_businesses_and_promotions(test_context):
    client, session_local = test_context
    admin = _admin_headers(client)
    owner = _register(client, email="owner@example.com")
    other = _register(client, email="other@example.com")
    token = owner["access_token"]
    first = _create_business(client, token)
    second = _create_business(client, token, name="Second Hub")
    promotion_ids = [
        _create_promotion(client, token, first),
        _create_promotion(client, token, first),
        _create_promotion(client, token, second),
    ]
    other_business = _create_business(client, other["access_token"], name="Other Hub")
    other_promotion = _create_promotion(client, other["access_token"], other_business)
    client.post(f"/api/promotions/{promotion_ids[0]}/click")

    res = client.delete(f"/api/admin/users/{owner['user']['id']}", headers=admin)
    assert res.status_code == 200, res.text
    assert res.json()["message"] == "User and associated data deleted successfully"

    with session_local() as db:
        assert db.get(User, owner["user"]["id"]) is None
        assert db.execute(
            select(func.count(Business.id)).where(Business.owner_user_id == owner["user"]["id"])
        ).scalar_one() == 0
        remaining = db.execute(select(Promotion.id)).scalars().all()
        assert remaining == [other_promotion]
        assert db.execute(
            select(func.count(RefreshToken.id)).where(RefreshToken.user_id == owner["user"]["id"])
        ).scalar_one() == 0
        # The event log is append-only and keeps its history.
        assert db.execute(select(func.count(AnalyticEvent.id))).scalar_one() == 1

    refresh = client.post("/api/auth/refresh-token", json={"refreshToken": owner["refresh_token"]})
    assert refresh.status_code == 401


def test_list_businesses_filters(test_context):
    client, _ = test_context
    admin = _admin_headers(client)
    owner = _register(client, email="owner@example.com")["access_token"]
    gadgets = _create_business(client, owner)
    bakery = _create_business(client, owner, name="Sunrise Bakery", category="food")

    client.patch(f"/api/admin/businesses/{bakery}/verify", headers=admin)

    pending = client.get("/api/admin/businesses", params={"status": "pending"}, headers=admin).json()
    assert [row["id"] for row in pending["data"]] == [gadgets]

    food = client.get("/api/admin/businesses", params={"category": "food"}, headers=admin).json()
    assert [row["id"] for row in food["data"]] == [bakery]

    search = client.get("/api/admin/businesses", params={"search": "sunrise"}, headers=admin).json()
    assert [row["id"] for row in search["data"]] == [bakery]


def test_verify_business_defaults_and_explicit_values(test_context):
    client, _ = test_context
    admin = _admin_headers(client)
    owner = _register(client, email="owner@example.com")["access_token"]
    business_id = _create_business(client, owner)

    res = client.patch(f"/api/admin/businesses/{business_id}/verify", headers=admin)
    assert res.status_code == 200, res.text
    assert res.json()["message"] == "Business verification status updated"
    assert res.json()["data"]["isVerified"] is True
    assert res.json()["data"]["status"] == "active"

    res = client.patch(
        f"/api/admin/businesses/{business_id}/verify",
        json={"isVerified": False, "status": "suspended"},
        headers=admin,
    )
    assert res.json()["data"]["isVerified"] is False
    assert res.json()["data"]["status"] == "suspended"

    assert client.patch("/api/admin/businesses/missing/verify", headers=admin).status_code == 404


def test_feature_toggle_and_admin_promotion_listing(test_context):
    client, session_local = test_context
    admin = _admin_headers(client)
    owner = _register(client, email="owner@example.com")["access_token"]
    business_id = _create_business(client, owner)
    featured_id = _create_promotion(client, owner, business_id)
    paused_id = _create_promotion(client, owner, business_id)

    with session_local() as db:
        db.get(Promotion, paused_id).is_active = False
        db.commit()

    res = client.patch(f"/api/admin/promotions/{featured_id}/featured", headers=admin)
    assert res.status_code == 200, res.text
    assert res.json()["message"] == "Promotion featured successfully"
    assert res.json()["data"]["isFeatured"] is True

    public = client.get("/api/promotions/featured").json()
    assert [row["id"] for row in public["data"]] == [featured_id]

    listing = client.get("/api/admin/promotions", headers=admin).json()
    assert {row["id"] for row in listing["data"]} == {featured_id, paused_id}

    inactive = client.get("/api/admin/promotions", params={"active": "false"}, headers=admin).json()
    assert [row["id"] for row in inactive["data"]] == [paused_id]

    featured = client.get("/api/admin/promotions", params={"featured": "true"}, headers=admin).json()
    assert [row["id"] for row in featured["data"]] == [featured_id]

    res = client.patch(
        f"/api/admin/promotions/{featured_id}/featured",
        json={"isFeatured": False},
        headers=admin,
    )
    assert res.json()["message"] == "Promotion unfeatured successfully"
    assert client.get("/api/promotions/featured").json()["data"] == []
