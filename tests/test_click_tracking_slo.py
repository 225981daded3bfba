from datetime import datetime, timedelta, timezone
from time import perf_counter

import pytest
from sqlalchemy import func, select

from dealfinder.models.analytic_event import AnalyticEvent
from dealfinder.models.business import Business
from dealfinder.models.promotion import Promotion


def _register(client, *, email: str):
    return client.post(
        "/api/auth/register",
        json={"name": "Slo Owner", "email": email, "password": "password123", "role": "business"},
    )


def _auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _create_business_with_promotion(client, token: str) -> tuple[str, str]:
    create_business = client.post(
        "/api/business",
        data={"name": "SLO Outlet", "description": "Latency baseline", "category": "fashion"},
        headers=_auth_headers(token),
    )
    assert create_business.status_code == 201, create_business.text
    business_id = create_business.json()["data"]["id"]

    create_promotion = client.post(
        "/api/promotions",
        data={
            "business": business_id,
            "title": "SLO jackets",
            "description": "Jackets for the baseline run",
            "category": "fashion",
            "type": "discount",
            "discountPercentage": "20",
            "redirectUrl": "https://outlet.example.com/jackets",
            "endDate": (datetime.now(timezone.utc) + timedelta(days=2)).isoformat(),
        },
        files=[("images", ("jacket.png", b"\x89PNG-jacket", "image/png"))],
        headers=_auth_headers(token),
    )
    assert create_promotion.status_code == 201, create_promotion.text
    return business_id, create_promotion.json()["data"]["id"]


def _p95_ms(values: list[float]) -> float:
    if not values:
        return 0.0
    ordered = sorted(values)
    index = max(0, int(round(0.95 * len(ordered))) - 1)
    return ordered[min(index, len(ordered) - 1)]


def test_view_and_click_tracking_latency_and_counter_integrity(test_context):
    client, session_local = test_context

    register = _register(client, email="slo-owner@example.com")
    assert register.status_code == 201, register.text
    token = register.json()["access_token"]
    business_id, promotion_id = _create_business_with_promotion(client, token)

    max_tracking_p95_ms = 1200.0
    max_listing_ms = 1000.0
    sample_size = 25

    view_latencies_ms: list[float] = []
    click_latencies_ms: list[float] = []
    for _ in range(sample_size):
        started = perf_counter()
        view = client.get(f"/api/promotions/{promotion_id}")
        view_latencies_ms.append((perf_counter() - started) * 1000)
        assert view.status_code == 200, view.text

        started = perf_counter()
        click = client.post(f"/api/promotions/{promotion_id}/click")
        click_latencies_ms.append((perf_counter() - started) * 1000)
        assert click.status_code == 200, click.text
        assert click.json()["redirectUrl"] == "https://outlet.example.com/jackets"

    assert _p95_ms(view_latencies_ms) <= max_tracking_p95_ms
    assert _p95_ms(click_latencies_ms) <= max_tracking_p95_ms

    listing_start = perf_counter()
    listing = client.get("/api/promotions/search", params={"q": "jackets", "sortBy": "discount"})
    listing_ms = (perf_counter() - listing_start) * 1000
    assert listing.status_code == 200, listing.text
    assert listing.json()["data"][0]["clicks"] == sample_size
    assert listing_ms <= max_listing_ms

    db = session_local()
    try:
        promotion = db.get(Promotion, promotion_id)
        business = db.get(Business, business_id)
        click_events = int(
            db.execute(
                select(func.count(AnalyticEvent.id)).where(
                    AnalyticEvent.event_type == "click",
                    AnalyticEvent.promotion_id == promotion_id,
                )
            ).scalar_one()
        )
    finally:
        db.close()

    assert promotion.impressions == sample_size
    assert promotion.clicks == sample_size
    assert promotion.conversion_rate == pytest.approx(100.0)
    assert business.clicks == sample_size
    assert click_events == sample_size
