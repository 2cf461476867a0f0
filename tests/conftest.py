import hashlib
import hmac
import json
import pathlib
import sys
import time

import pytest
import stripe
from fastapi.testclient import TestClient

# Ensure repository root is importable when pytest is invoked from other directories
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from planotto.infra.stripe import client as stripe_client
from planotto.infra.supabase import profile_repo
from planotto.infra.supabase.client import SupabaseError
from planotto.services.payments.billing_core import REDUCED_PATCH_FIELDS

WEBHOOK_SECRET = "whsec_test_secret"


class FakeProfileStore:
    """In-memory stand-in for the user_profiles PostgREST calls."""

    def __init__(self):
        self.rows: dict[str, dict] = {}
        self.updates: list[tuple[str, dict]] = []
        self.stubs: list[tuple[str, str]] = []
        self.fail_full_update = False
        self.fail_reduced_update = False
        self.fail_lookups = False

    def add(self, user_id: str, **fields):
        self.rows[user_id] = {"user_id": user_id, **fields}

    def _find(self, column: str, value: str):
        if self.fail_lookups:
            raise SupabaseError("lookup failed", status_code=500)
        for user_id, row in self.rows.items():
            if value and row.get(column) == value:
                return user_id
        return None

    def find_user_id_by_customer_id(self, customer_id):
        return self._find("stripe_customer_id", customer_id)

    def find_user_id_by_email(self, email):
        return self._find("email", (email or "").lower())

    def upsert_profile_stub(self, user_id, email):
        self.stubs.append((user_id, email))
        self.rows.setdefault(user_id, {"user_id": user_id, "email": email})

    def update_profile(self, user_id, patch):
        self.updates.append((user_id, dict(patch)))
        reduced = set(patch) == set(REDUCED_PATCH_FIELDS)
        if (reduced and self.fail_reduced_update) or (not reduced and self.fail_full_update):
            raise SupabaseError("column user_profiles.stripe_price_id does not exist", status_code=400)
        if user_id in self.rows:
            self.rows[user_id].update(patch)

    def read_billing_profile(self, user_id):
        return self.rows.get(user_id)

    def read_stripe_customer_id(self, user_id):
        return (self.rows.get(user_id) or {}).get("stripe_customer_id")

    def save_stripe_customer_id(self, user_id, customer_id):
        self.rows.setdefault(user_id, {"user_id": user_id})["stripe_customer_id"] = customer_id
        return True


class FakeStripe:
    """Records the Stripe API calls the billing code makes."""

    def __init__(self):
        self.subscriptions: dict[str, dict] = {}
        self.customers: dict[str, dict] = {}
        self.created_customers: list[dict] = []
        self.checkout_sessions: list[dict] = []
        self.portal_sessions: list[dict] = []
        self.retrieved_subscriptions: list[str] = []

    def retrieve_subscription(self, subscription_id):
        self.retrieved_subscriptions.append(subscription_id)
        if subscription_id not in self.subscriptions:
            raise stripe.StripeError(f"No such subscription: {subscription_id}")
        return self.subscriptions[subscription_id]

    def retrieve_customer(self, customer_id):
        if customer_id not in self.customers:
            raise stripe.StripeError(f"No such customer: {customer_id}")
        return self.customers[customer_id]

    def create_customer(self, email, user_id):
        customer_id = f"cus_new_{len(self.created_customers) + 1}"
        self.created_customers.append({"id": customer_id, "email": email, "user_id": user_id})
        return customer_id

    def create_checkout_session(self, **params):
        self.checkout_sessions.append(params)
        return {"id": "cs_test_1", "url": "https://checkout.stripe.test/c/cs_test_1"}

    def create_portal_session(self, customer_id, return_url):
        self.portal_sessions.append({"customer": customer_id, "return_url": return_url})
        return {"id": "bps_test_1", "url": "https://billing.stripe.test/p/session"}


@pytest.fixture
def billing_env(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "https://planotto-test.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-role-key-for-tests-0123456789")
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_123")
    monkeypatch.setenv("STRIPE_PRICE_ID_PRO", "price_pro_monthly")
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    monkeypatch.setenv("APP_URL", "https://planotto.test")
    monkeypatch.delenv("BILLING_WEBHOOK_DEDUP", raising=False)


@pytest.fixture
def profile_store(monkeypatch):
    store = FakeProfileStore()
    for name in (
        "find_user_id_by_customer_id",
        "find_user_id_by_email",
        "upsert_profile_stub",
        "update_profile",
        "read_billing_profile",
        "read_stripe_customer_id",
        "save_stripe_customer_id",
    ):
        monkeypatch.setattr(profile_repo, name, getattr(store, name))
    return store


@pytest.fixture
def fake_stripe(monkeypatch):
    fake = FakeStripe()
    for name in (
        "retrieve_subscription",
        "retrieve_customer",
        "create_customer",
        "create_checkout_session",
        "create_portal_session",
    ):
        monkeypatch.setattr(stripe_client, name, getattr(fake, name))
    return fake


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def stripe_event(event_type: str, obj: dict, event_id: str = "evt_test_1") -> str:
    return json.dumps({"id": event_id, "object": "event", "type": event_type, "data": {"object": obj}})


@pytest.fixture
def app_instance():
    from planotto.main import app

    # Clear dependency overrides to ensure isolation between tests
    app.dependency_overrides = {}
    yield app
    app.dependency_overrides = {}


@pytest.fixture
def client(app_instance):
    with TestClient(app_instance) as c:
        yield c
