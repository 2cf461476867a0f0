import pytest

from planotto.api import deps
from planotto.domain.auth.models import Identity
from planotto.domain.billing.plans import PAID_FEATURES
from planotto.infra.supabase.client import SupabaseError


@pytest.fixture
def authed(app_instance, billing_env, profile_store, fake_stripe):
    identity = Identity(user_id="user-1", email="cook@example.com", user_metadata={"plan": "premium"})
    app_instance.dependency_overrides[deps.require_identity] = lambda: identity
    return profile_store, fake_stripe


def test_checkout_creates_customer_and_session(client, authed):
    store, fake = authed
    response = client.post("/api/billing/checkout", json={"success_path": "/menus?billing=ok"})

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["url"] == "https://checkout.stripe.test/c/cs_test_1"

    assert store.stubs == [("user-1", "cook@example.com")]
    assert fake.created_customers == [{"id": "cus_new_1", "email": "cook@example.com", "user_id": "user-1"}]
    assert store.rows["user-1"]["stripe_customer_id"] == "cus_new_1"

    params = fake.checkout_sessions[0]
    assert params["mode"] == "subscription"
    assert params["client_reference_id"] == "user-1"
    assert params["metadata"] == {"supabase_user_id": "user-1"}
    assert params["line_items"] == [{"price": "price_pro_monthly", "quantity": 1}]
    assert params["customer"] == "cus_new_1"
    assert params["success_url"] == "https://planotto.test/menus?billing=ok"
    assert params["cancel_url"] == "https://planotto.test/auth?billing=cancel"


def test_checkout_reuses_stored_customer_and_rejects_foreign_redirects(client, authed):
    store, fake = authed
    store.add("user-1", email="cook@example.com", stripe_customer_id="cus_existing")

    response = client.post(
        "/api/billing/checkout",
        json={"success_path": "https://evil.example/phish", "cancel_path": "//evil.example"},
    )

    assert response.status_code == 200
    assert fake.created_customers == []
    params = fake.checkout_sessions[0]
    assert params["customer"] == "cus_existing"
    assert params["success_url"] == "https://planotto.test/auth?billing=success"
    assert params["cancel_url"] == "https://planotto.test/auth?billing=cancel"


def test_checkout_without_body(client, authed):
    response = client.post("/api/billing/checkout")
    assert response.status_code == 200


def test_checkout_requires_stripe_config(client, authed, monkeypatch):
    monkeypatch.delenv("STRIPE_PRICE_ID_PRO", raising=False)
    response = client.post("/api/billing/checkout", json={})
    assert response.status_code == 503
    assert response.json() == {"ok": False, "error": "Stripe is not configured."}


def test_checkout_stripe_failure_is_500(client, authed, monkeypatch):
    def fail(**params):
        raise RuntimeError("stripe is down")

    monkeypatch.setattr("planotto.infra.stripe.client.create_checkout_session", fail)
    response = client.post("/api/billing/checkout", json={})
    assert response.status_code == 500
    assert response.json()["error"] == "stripe is down"


def test_portal_requires_stored_customer(client, authed):
    response = client.post("/api/billing/portal", json={})
    assert response.status_code == 400
    assert "Stripe customer is missing" in response.json()["error"]


def test_portal_session(client, authed):
    store, fake = authed
    store.add("user-1", email="cook@example.com", stripe_customer_id="cus_1")

    response = client.post("/api/billing/portal", json={"return_path": "/settings"})

    assert response.status_code == 200
    assert response.json()["url"] == "https://billing.stripe.test/p/session"
    assert fake.portal_sessions == [{"customer": "cus_1", "return_url": "https://planotto.test/settings"}]


def test_status_from_profile(client, authed):
    store, _ = authed
    store.add(
        "user-1",
        email="cook@example.com",
        plan_tier="pro",
        subscription_status="past_due",
        pro_expires_at="2026-01-01T00:00:00Z",
        stripe_customer_id="cus_1",
    )

    response = client.get("/api/billing/status")

    assert response.status_code == 200
    body = response.json()
    assert body["plan_tier"] == "pro"
    assert body["subscription_status"] == "past_due"
    assert body["pro_expires_at"] == "2026-01-01T00:00:00Z"
    assert body["has_stripe_customer"] is True
    assert body["billing_configured"] is True
    assert body["paid_features"] == list(PAID_FEATURES)


def test_status_without_profile_uses_auth_metadata(client, authed):
    response = client.get("/api/billing/status")

    body = response.json()
    assert body["plan_tier"] == "pro"
    assert body["subscription_status"] == "inactive"
    assert body["has_stripe_customer"] is False


def test_status_read_failure_falls_back(client, authed, monkeypatch):
    def broken(user_id):
        raise SupabaseError("relation does not exist", status_code=404)

    monkeypatch.setattr("planotto.infra.supabase.profile_repo.read_billing_profile", broken)
    response = client.get("/api/billing/status")
    assert response.status_code == 200
    assert response.json()["plan_tier"] == "pro"


def test_status_does_not_need_stripe(client, authed, monkeypatch):
    monkeypatch.delenv("STRIPE_SECRET_KEY", raising=False)
    response = client.get("/api/billing/status")
    assert response.status_code == 200
    assert response.json()["billing_configured"] is False
