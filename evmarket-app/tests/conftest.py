"""Shared fixtures for the marketplace tests."""

import hashlib
import hmac
import json
import time
from decimal import Decimal

import pytest
from django.contrib.auth.models import User

from accounts.models import Profile
from contracts.models import Contract
from contracts.services import ContractService
from listings.models import Post
from payments.models import VipPlan

WEBHOOK_SECRET = "whsec_test_secret"


def make_user(username, role=Profile.CUSTOMER, **kwargs):
    """Create a user with the given platform role."""
    user = User.objects.create_user(
        username=username, email=f"{username}@example.com", password="pass1234", **kwargs)
    if role != Profile.CUSTOMER:
        Profile.objects.filter(user=user).update(role=role)
    return User.objects.get(pk=user.pk)


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp=None) -> str:
    """Build a Stripe-Signature header for a raw webhook payload."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload.decode()}".encode()
    signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def json_post(client, url, data=None, **extra):
    return client.post(url, data=json.dumps(data or {}), content_type="application/json", **extra)


@pytest.fixture
def buyer(db):
    return make_user("buyer")


@pytest.fixture
def seller(db):
    return make_user("seller")


@pytest.fixture
def outsider(db):
    return make_user("outsider")


@pytest.fixture
def staff_user(db):
    return make_user("staff", role=Profile.STAFF)


@pytest.fixture
def other_staff(db):
    return make_user("staff2", role=Profile.STAFF)


@pytest.fixture
def admin_user(db):
    return make_user("admin", role=Profile.ADMIN)


@pytest.fixture
def vehicle_post(seller):
    return Post.objects.create(
        user=seller, title="VinFast VF8 2023", price=Decimal("850000000"), category=Post.VEHICLE)


@pytest.fixture
def battery_post(seller):
    return Post.objects.create(
        user=seller, title="Pack batterie 42 kWh", price=Decimal("120000000"), category=Post.BATTERY)


@pytest.fixture
def pending_contract(buyer, vehicle_post):
    return ContractService.create_direct(buyer, vehicle_post.id)


@pytest.fixture
def negotiating_contract(pending_contract, admin_user, staff_user):
    return ContractService.assign_staff(pending_contract.id, admin_user, staff_user.id)


@pytest.fixture
def awaiting_sign_contract(negotiating_contract, staff_user):
    return ContractService.finalize(negotiating_contract.id, staff_user, {
        "agreed_price": "425,000,000",
        "brokerage_fee": "500,000",
        "title_transfer_fee": "2,000,000",
    })


@pytest.fixture
def otp_contract(awaiting_sign_contract, staff_user):
    """Contract with freshly issued OTP codes for both parties."""
    ContractService.send_otp(awaiting_sign_contract.id, staff_user)
    return Contract.objects.get(pk=awaiting_sign_contract.pk)


@pytest.fixture
def one_time_plan(db):
    return VipPlan.objects.create(
        name="Gold 30 jours", slug="gold", type=VipPlan.ONE_TIME, amount=Decimal("99000"),
        currency="vnd", duration_days=30, priority=5, stripe_price_id="price_gold")


@pytest.fixture
def subscription_plan(db):
    return VipPlan.objects.create(
        name="Diamond mensuel", slug="diamond", type=VipPlan.SUBSCRIPTION, amount=Decimal("199000"),
        currency="vnd", interval=VipPlan.MONTH, interval_count=1, priority=10,
        stripe_price_id="price_diamond")


@pytest.fixture
def webhook_settings(settings):
    settings.STRIPE_WEBHOOK_SECRET = WEBHOOK_SECRET
    settings.STRIPE_SECRET_KEY = "sk_test_dummy"
    return settings
