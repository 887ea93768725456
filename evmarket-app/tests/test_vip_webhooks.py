"""
Tests for Stripe webhook reconciliation of VIP purchases.
"""

import json
from datetime import timedelta
from unittest import mock

import pytest
from django.urls import reverse
from django.utils import timezone

from listings.models import Post
from payments.models import StripeWebhookLog, VipPurchase
from payments.services.stripe_gateway import stripe_gateway
from payments.services.vip import VipCheckoutService, VipReconciliationService

from .conftest import sign_payload

pytestmark = pytest.mark.django_db


@pytest.fixture
def pending_purchase(seller, vehicle_post, one_time_plan):
    return VipPurchase.objects.create(
        user=seller, post=vehicle_post, vip_plan=one_time_plan, order_code="VIP1760000000000123",
        amount=one_time_plan.amount, currency="vnd", checkout_session_id="cs_test_1")


@pytest.fixture
def subscribed_post(seller, vehicle_post, subscription_plan):
    """A post promoted through a paid subscription sub_123."""
    expires_at = timezone.now() + timedelta(days=20)
    VipPurchase.objects.create(
        user=seller, post=vehicle_post, vip_plan=subscription_plan, order_code="VIP1760000000000456",
        amount=subscription_plan.amount, status=VipPurchase.PAID, subscription_id="sub_123",
        paid_at=timezone.now())
    vehicle_post.activate_vip(subscription_plan, "diamond", expires_at)
    return vehicle_post


def checkout_completed(purchase, **session):
    obj = {
        "id": "cs_test_1",
        "object": "checkout.session",
        "subscription": None,
        "metadata": {
            "orderCode": purchase.order_code,
            "userId": str(purchase.user_id),
            "planId": str(purchase.vip_plan_id),
            "postId": str(purchase.post_id),
            "type": "one_time",
            "durationDays": "30",
        },
    }
    obj.update(session)
    return {"id": "evt_checkout_1", "type": "checkout.session.completed", "data": {"object": obj}}


def subscription_event(event_type, **subscription):
    obj = {"id": "sub_123", "object": "subscription", "status": "active", "cancel_at_period_end": False}
    obj.update(subscription)
    return {"id": f"evt_{event_type}", "type": event_type, "data": {"object": obj}}


def test_checkout_completed_activates_vip(pending_purchase, vehicle_post):
    outcome = VipReconciliationService.process_webhook(checkout_completed(pending_purchase))

    assert outcome == "activated"
    vehicle_post.refresh_from_db()
    assert vehicle_post.is_vip
    assert vehicle_post.is_active
    assert vehicle_post.vip_tier == "gold"
    assert vehicle_post.vip_priority == 5
    assert vehicle_post.verify_status == Post.NOT_VERIFIED
    assert vehicle_post.paid_at is not None
    expected = timezone.now() + timedelta(days=30)
    assert abs(vehicle_post.vip_expires_at - expected) < timedelta(minutes=1)

    pending_purchase.refresh_from_db()
    assert pending_purchase.status == VipPurchase.PAID
    assert pending_purchase.raw_payload["id"] == "cs_test_1"
    assert StripeWebhookLog.objects.get().processed


def test_replayed_event_is_a_no_op(pending_purchase, vehicle_post):
    event = checkout_completed(pending_purchase)
    VipReconciliationService.process_webhook(event)
    vehicle_post.refresh_from_db()
    first_paid_at = vehicle_post.paid_at
    first_expiry = vehicle_post.vip_expires_at

    assert VipReconciliationService.process_webhook(event) == "already_processed"

    vehicle_post.refresh_from_db()
    assert vehicle_post.paid_at == first_paid_at
    assert vehicle_post.vip_expires_at == first_expiry


def test_payment_after_gateway_outage_activates_vip(seller, vehicle_post, one_time_plan):
    """A session created at Stripe despite a timeout on our side is still honoured."""
    failure = (False, {"error": "Read timed out", "error_type": "api_error"})
    with mock.patch.object(stripe_gateway, "create_checkout_session", return_value=failure):
        with pytest.raises(RuntimeError):
            VipCheckoutService.create_checkout(seller, one_time_plan.id, vehicle_post.id)
    purchase = VipPurchase.objects.get()

    outcome = VipReconciliationService.process_webhook(checkout_completed(purchase))

    assert outcome == "activated"
    vehicle_post.refresh_from_db()
    assert vehicle_post.is_vip
    purchase.refresh_from_db()
    assert purchase.status == VipPurchase.PAID


def test_payment_on_failed_purchase_needs_review(pending_purchase, vehicle_post):
    pending_purchase.mark_failed("No such price")

    outcome = VipReconciliationService.process_webhook(checkout_completed(pending_purchase))

    assert outcome == "needs_review"
    pending_purchase.refresh_from_db()
    assert pending_purchase.status == VipPurchase.FAILED
    vehicle_post.refresh_from_db()
    assert not vehicle_post.is_vip


def test_expired_session_cancels_purchase(pending_purchase):
    event = checkout_completed(pending_purchase)
    event["type"] = "checkout.session.expired"

    assert VipReconciliationService.process_webhook(event) == "canceled"
    pending_purchase.refresh_from_db()
    assert pending_purchase.status == VipPurchase.CANCELED


def test_expired_session_frees_listing_for_new_checkout(seller, vehicle_post, one_time_plan):
    session = (True, {"url": "https://checkout.stripe.com/c/pay/cs_test_1", "session_id": "cs_test_1"})
    with mock.patch.object(stripe_gateway, "create_checkout_session", return_value=session):
        first, _ = VipCheckoutService.create_checkout(seller, one_time_plan.id, vehicle_post.id)
        event = checkout_completed(first)
        event["type"] = "checkout.session.expired"
        VipReconciliationService.process_webhook(event)

        second, resumed = VipCheckoutService.create_checkout(seller, one_time_plan.id, vehicle_post.id)

    assert not resumed
    assert second.order_code != first.order_code


def test_expired_event_for_paid_purchase_is_ignored(pending_purchase):
    VipReconciliationService.process_webhook(checkout_completed(pending_purchase))
    event = checkout_completed(pending_purchase)
    event["type"] = "checkout.session.expired"

    assert VipReconciliationService.process_webhook(event) == "already_processed"
    pending_purchase.refresh_from_db()
    assert pending_purchase.status == VipPurchase.PAID


def test_unknown_order_code_is_ignored(pending_purchase):
    event = checkout_completed(pending_purchase)
    event["data"]["object"]["metadata"]["orderCode"] = "VIP0000"
    assert VipReconciliationService.process_webhook(event) == "unknown_order"
    pending_purchase.refresh_from_db()
    assert pending_purchase.status == VipPurchase.PENDING


def test_missing_order_code(pending_purchase):
    event = checkout_completed(pending_purchase, metadata={})
    assert VipReconciliationService.process_webhook(event) == "missing_order_code"


def test_owner_mismatch_marks_purchase_failed(pending_purchase, vehicle_post, buyer):
    Post.objects.filter(pk=vehicle_post.pk).update(user=buyer)

    outcome = VipReconciliationService.process_webhook(checkout_completed(pending_purchase))

    assert outcome == "owner_mismatch"
    pending_purchase.refresh_from_db()
    assert pending_purchase.status == VipPurchase.FAILED
    vehicle_post.refresh_from_db()
    assert not vehicle_post.is_vip


def test_subscription_checkout_uses_period_end(pending_purchase, vehicle_post):
    period_end = timezone.now() + timedelta(days=31)
    state = {"id": "sub_999", "status": "active", "cancel_at_period_end": False,
             "current_period_end": int(period_end.timestamp())}
    with mock.patch.object(stripe_gateway, "retrieve_subscription", return_value=state) as retrieve:
        VipReconciliationService.process_webhook(checkout_completed(pending_purchase, subscription="sub_999"))

    retrieve.assert_called_once_with("sub_999")
    vehicle_post.refresh_from_db()
    assert abs(vehicle_post.vip_expires_at - period_end) < timedelta(seconds=1)
    pending_purchase.refresh_from_db()
    assert pending_purchase.subscription_id == "sub_999"


def test_subscription_without_period_falls_back_to_duration(pending_purchase, vehicle_post):
    with mock.patch.object(stripe_gateway, "retrieve_subscription", return_value=None):
        VipReconciliationService.process_webhook(checkout_completed(pending_purchase, subscription="sub_999"))
    vehicle_post.refresh_from_db()
    assert vehicle_post.vip_expires_at > timezone.now() + timedelta(days=29)


def test_subscription_deleted_deactivates_post(subscribed_post):
    outcome = VipReconciliationService.process_webhook(subscription_event("customer.subscription.deleted"))
    assert outcome == "deactivated"
    subscribed_post.refresh_from_db()
    assert not subscribed_post.is_vip
    assert not subscribed_post.is_active


def test_invoice_failure_finds_legacy_purchase(seller, vehicle_post, subscription_plan):
    """Purchases recorded before the subscription column existed are found through their payload."""
    purchase = VipPurchase.objects.create(
        user=seller, post=vehicle_post, vip_plan=subscription_plan, order_code="VIP1750000000000789",
        amount=subscription_plan.amount, status=VipPurchase.PAID,
        raw_payload={"id": "cs_old", "subscription": "sub_legacy"})
    vehicle_post.activate_vip(subscription_plan, "diamond", timezone.now() + timedelta(days=5))

    event = {"id": "evt_inv", "type": "invoice.payment_failed",
             "data": {"object": {"id": "in_1", "subscription": "sub_legacy"}}}
    assert VipReconciliationService.process_webhook(event) == "deactivated"

    vehicle_post.refresh_from_db()
    assert not vehicle_post.is_vip
    purchase.refresh_from_db()
    assert purchase.subscription_id == "sub_legacy"


def test_invoice_failure_with_nested_subscription(subscribed_post):
    event = {"id": "evt_inv", "type": "invoice.payment_failed", "data": {"object": {
        "id": "in_2", "parent": {"subscription_details": {"subscription": "sub_123"}}}}}
    assert VipReconciliationService.process_webhook(event) == "deactivated"


def test_unknown_subscription_is_logged_only(subscribed_post):
    event = subscription_event("customer.subscription.deleted", id="sub_other")
    assert VipReconciliationService.process_webhook(event) == "unknown_subscription"
    subscribed_post.refresh_from_db()
    assert subscribed_post.is_vip


@pytest.mark.parametrize("status", ["canceled", "past_due", "unpaid"])
def test_subscription_update_deactivates_on_bad_status(subscribed_post, status):
    event = subscription_event("customer.subscription.updated", status=status)
    assert VipReconciliationService.process_webhook(event) == "deactivated"
    subscribed_post.refresh_from_db()
    assert not subscribed_post.is_vip


def test_subscription_cancel_at_period_end_caps_expiry(subscribed_post):
    period_end = timezone.now() + timedelta(days=10)
    event = subscription_event(
        "customer.subscription.updated", cancel_at_period_end=True,
        current_period_end=int(period_end.timestamp()))

    assert VipReconciliationService.process_webhook(event) == "capped"
    subscribed_post.refresh_from_db()
    assert subscribed_post.is_vip
    assert abs(subscribed_post.vip_expires_at - period_end) < timedelta(seconds=1)


def test_subscription_renewal_extends_expiry(subscribed_post):
    period_end = timezone.now() + timedelta(days=50)
    event = subscription_event(
        "customer.subscription.updated", items={"data": [{"current_period_end": int(period_end.timestamp())}]})

    assert VipReconciliationService.process_webhook(event) == "renewed"
    subscribed_post.refresh_from_db()
    assert abs(subscribed_post.vip_expires_at - period_end) < timedelta(seconds=1)


def test_other_events_are_ignored(db):
    event = {"id": "evt_x", "type": "payment_intent.created", "data": {"object": {}}}
    assert VipReconciliationService.process_webhook(event) == "ignored"


def test_processing_error_is_recorded(pending_purchase):
    with mock.patch.object(VipReconciliationService, "handle_event", side_effect=RuntimeError("boom")):
        assert VipReconciliationService.process_webhook(checkout_completed(pending_purchase)) == "error"
    log = StripeWebhookLog.objects.get()
    assert not log.processed
    assert log.error_message == "boom"


def test_webhook_view_rejects_bad_signature(client, webhook_settings, pending_purchase):
    payload = json.dumps(checkout_completed(pending_purchase)).encode()
    response = client.post(
        reverse("payments:stripe-webhook"), data=payload, content_type="application/json",
        HTTP_STRIPE_SIGNATURE=sign_payload(payload, secret="whsec_wrong"))

    assert response.status_code == 400
    assert response.json()["received"] is False
    assert not StripeWebhookLog.objects.exists()


def test_webhook_view_activates_vip(client, webhook_settings, pending_purchase, vehicle_post):
    payload = json.dumps(checkout_completed(pending_purchase)).encode()
    response = client.post(
        reverse("payments:stripe-webhook"), data=payload, content_type="application/json",
        HTTP_STRIPE_SIGNATURE=sign_payload(payload))

    assert response.status_code == 200
    assert response.json() == {"received": True}
    vehicle_post.refresh_from_db()
    assert vehicle_post.is_vip


def test_webhook_view_acknowledges_internal_errors(client, webhook_settings, pending_purchase):
    payload = json.dumps(checkout_completed(pending_purchase)).encode()
    with mock.patch.object(VipReconciliationService, "process_webhook", side_effect=RuntimeError("db down")):
        response = client.post(
            reverse("payments:stripe-webhook"), data=payload, content_type="application/json",
            HTTP_STRIPE_SIGNATURE=sign_payload(payload))
    assert response.status_code == 200
    assert response.json() == {"received": True}
