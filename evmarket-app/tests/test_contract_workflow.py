"""
Tests for the contract lifecycle: creation, staff assignment, negotiation,
finalisation, final delivery and cancellation.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from contracts.models import Contract, FEE_FIELDS
from contracts.serializers import serialize_contract
from contracts.services import ContractService
from core.exceptions import Conflict, NotAllowed, NotFound, ValidationFailed
from listings.models import Post

from .conftest import make_user

pytestmark = pytest.mark.django_db


def test_buyer_creates_direct_contract():
    """A buyer opening a contract on someone else's vehicle gets a pending contract."""
    seller = make_user("seller9", id=9)
    buyer = make_user("buyer5", id=5)
    post = Post.objects.create(
        id=42, user=seller, title="VF e34", price=Decimal("690000000"), category=Post.VEHICLE)

    contract = ContractService.create_direct(buyer, post.id)

    assert contract.status == Contract.PENDING
    assert contract.buyer_id == 5
    assert contract.seller_id == 9
    assert contract.post_id == 42
    assert contract.staff_id is None


def test_buyer_cannot_buy_own_post(seller, vehicle_post):
    with pytest.raises(ValidationFailed):
        ContractService.create_direct(seller, vehicle_post.id)


def test_battery_posts_are_not_contractable(buyer, battery_post):
    with pytest.raises(ValidationFailed):
        ContractService.create_direct(buyer, battery_post.id)


def test_sold_post_is_rejected(buyer, vehicle_post):
    vehicle_post.sale_status = Post.SOLD
    vehicle_post.save()
    with pytest.raises(Conflict):
        ContractService.create_direct(buyer, vehicle_post.id)


def test_unknown_post_is_not_found(buyer):
    with pytest.raises(NotFound):
        ContractService.create_direct(buyer, 999)


def test_only_one_active_contract_per_buyer_and_post(pending_contract, buyer, vehicle_post):
    with pytest.raises(Conflict):
        ContractService.create_direct(buyer, vehicle_post.id)


def test_new_contract_allowed_after_cancellation(pending_contract, buyer, vehicle_post, admin_user):
    ContractService.cancel(pending_contract.id, admin_user, "Acheteur injoignable")
    contract = ContractService.create_direct(buyer, vehicle_post.id)
    assert contract.status == Contract.PENDING
    assert contract.id != pending_contract.id


def test_admin_assigns_staff(pending_contract, admin_user, staff_user):
    contract = ContractService.assign_staff(pending_contract.id, admin_user, staff_user.id)
    assert contract.status == Contract.NEGOTIATING
    assert contract.staff_id == staff_user.id


def test_non_admin_cannot_assign_staff(pending_contract, staff_user):
    with pytest.raises(NotAllowed):
        ContractService.assign_staff(pending_contract.id, staff_user, staff_user.id)


def test_assignee_must_have_staff_role(pending_contract, admin_user, outsider):
    with pytest.raises(ValidationFailed):
        ContractService.assign_staff(pending_contract.id, admin_user, outsider.id)


def test_reassigning_same_staff_conflicts(negotiating_contract, admin_user, staff_user):
    with pytest.raises(Conflict):
        ContractService.assign_staff(negotiating_contract.id, admin_user, staff_user.id)


def test_staff_can_be_replaced_during_negotiation(negotiating_contract, admin_user, other_staff):
    contract = ContractService.assign_staff(negotiating_contract.id, admin_user, other_staff.id)
    assert contract.staff_id == other_staff.id
    assert contract.status == Contract.NEGOTIATING


def test_unassigned_staff_cannot_finalize(negotiating_contract, other_staff):
    """Only the assigned staff member may finalise, even if another has the staff role."""
    with pytest.raises(NotAllowed):
        ContractService.finalize(negotiating_contract.id, other_staff, {"agreed_price": "1000"})
    negotiating_contract.refresh_from_db()
    assert negotiating_contract.status == Contract.NEGOTIATING


def test_record_appointment(negotiating_contract, staff_user):
    contract = ContractService.record_appointment(negotiating_contract.id, staff_user, {
        "appointment_time": "2026-11-02T09:30:00",
        "appointment_place": "Showroom Quận 7",
        "appointment_note": "Apporter la carte grise",
    })
    assert contract.status == Contract.NEGOTIATING
    assert contract.appointment_place == "Showroom Quận 7"
    assert timezone.is_aware(contract.appointment_time)


def test_appointment_requires_time_and_place(negotiating_contract, staff_user):
    with pytest.raises(ValidationFailed):
        ContractService.record_appointment(negotiating_contract.id, staff_user, {"appointment_place": "Hà Nội"})
    with pytest.raises(ValidationFailed):
        ContractService.record_appointment(
            negotiating_contract.id, staff_user, {"appointment_time": "2026-11-02T09:30:00+07:00"})


def test_finalize_accepts_formatted_amounts(negotiating_contract, staff_user):
    """Amounts with thousands separators are stored as exact decimals."""
    contract = ContractService.finalize(negotiating_contract.id, staff_user, {
        "agreed_price": "425,000,000",
        "brokerage_fee": "500,000",
    })
    contract.refresh_from_db()
    assert contract.status == Contract.AWAITING_SIGN
    assert contract.agreed_price == Decimal("425000000")
    assert contract.brokerage_fee == Decimal("500000")
    assert contract.title_transfer_fee == Decimal("0")


@pytest.mark.parametrize("price", ["", "0", "-10", "abc", None])
def test_finalize_rejects_invalid_price(negotiating_contract, staff_user, price):
    with pytest.raises(ValidationFailed):
        ContractService.finalize(negotiating_contract.id, staff_user, {"agreed_price": price})


def test_finalize_rejects_negative_fee(negotiating_contract, staff_user):
    with pytest.raises(ValidationFailed):
        ContractService.finalize(negotiating_contract.id, staff_user, {
            "agreed_price": "1000", "title_transfer_fee": "-5"})


def test_fee_responsibility_defaults_and_overrides(negotiating_contract, staff_user):
    contract = ContractService.finalize(negotiating_contract.id, staff_user, {
        "agreed_price": "1000000",
        "brokerage_fee": "100",
        "title_transfer_fee": "20",
        "admin_processing_fee": "3",
        "fee_responsibility": {"admin_processing_fee": "buyer"},
    })
    assert contract.responsibility_for("brokerage_fee") == "seller"
    assert contract.responsibility_for("title_transfer_fee") == "buyer"
    assert contract.fee_total_for("buyer") == Decimal("23")
    assert contract.fee_total_for("seller") == Decimal("100")
    assert contract.total_extra_fees == Decimal("123")


def test_fee_responsibility_is_validated(negotiating_contract, staff_user):
    with pytest.raises(ValidationFailed):
        ContractService.finalize(negotiating_contract.id, staff_user, {
            "agreed_price": "1000", "fee_responsibility": {"brokerage_fee": "notary"}})
    with pytest.raises(ValidationFailed):
        ContractService.finalize(negotiating_contract.id, staff_user, {
            "agreed_price": "1000", "fee_responsibility": {"parking_fee": "buyer"}})


def test_refinalize_before_signature_replaces_terms(otp_contract, staff_user):
    """Changing the terms invalidates codes that were already sent."""
    contract = ContractService.finalize(otp_contract.id, staff_user, {"agreed_price": "410,000,000"})
    assert contract.agreed_price == Decimal("410000000")
    assert contract.buyer_otp is None
    assert contract.seller_otp is None


def test_refinalize_after_a_signature_conflicts(otp_contract, buyer, staff_user):
    ContractService.verify_otp(otp_contract.id, buyer, otp_contract.buyer_otp)
    with pytest.raises(Conflict):
        ContractService.finalize(otp_contract.id, staff_user, {"agreed_price": "1"})


def test_send_draft_emails_both_parties(awaiting_sign_contract, staff_user, mailoutbox):
    contract = ContractService.send_draft(awaiting_sign_contract.id, staff_user)
    assert contract.status == Contract.AWAITING_SIGN
    assert sorted(m.to[0] for m in mailoutbox) == ["buyer@example.com", "seller@example.com"]


def test_send_draft_requires_negotiation(pending_contract, staff_user):
    pending_contract.staff = staff_user
    pending_contract.save()
    with pytest.raises(Conflict):
        ContractService.send_draft(pending_contract.id, staff_user)


def test_pending_contract_cannot_be_signed(pending_contract, buyer):
    with pytest.raises(Conflict):
        ContractService.verify_otp(pending_contract.id, buyer, "123456")


def test_send_otp_requires_awaiting_sign(negotiating_contract, staff_user):
    with pytest.raises(Conflict):
        ContractService.send_otp(negotiating_contract.id, staff_user)


def test_send_final_requires_both_signatures(awaiting_sign_contract, staff_user):
    with pytest.raises(Conflict):
        ContractService.send_final(awaiting_sign_contract.id, staff_user)


def test_send_final_completes_signed_contract(otp_contract, buyer, seller, staff_user, mailoutbox):
    ContractService.verify_otp(otp_contract.id, buyer, otp_contract.buyer_otp)
    ContractService.verify_otp(otp_contract.id, seller, otp_contract.seller_otp)
    mailoutbox.clear()

    contract = ContractService.send_final(otp_contract.id, staff_user)

    assert contract.status == Contract.COMPLETED
    assert contract.completed_at is not None
    assert len(mailoutbox) == 2


def test_cancel_by_assigned_staff(awaiting_sign_contract, staff_user):
    contract = ContractService.cancel(awaiting_sign_contract.id, staff_user, "Véhicule endommagé")
    assert contract.status == Contract.CANCELLED
    assert contract.cancel_reason == "Véhicule endommagé"


def test_cancel_forbidden_for_parties(pending_contract, buyer):
    with pytest.raises(NotAllowed):
        ContractService.cancel(pending_contract.id, buyer)


def test_terminal_contract_cannot_be_cancelled(pending_contract, admin_user):
    ContractService.cancel(pending_contract.id, admin_user)
    with pytest.raises(Conflict):
        ContractService.cancel(pending_contract.id, admin_user)


def test_complete_signing_only_from_awaiting_sign():
    """No lifecycle event moves a contract straight from pending to signed."""
    for event, (allowed_from, target) in Contract.TRANSITIONS.items():
        if target == Contract.SIGNED:
            assert allowed_from == (Contract.AWAITING_SIGN,)
        assert Contract.NOTARIZING != target


def test_viewer_access(pending_contract, buyer, seller, outsider, admin_user):
    assert ContractService.get_for_viewer(pending_contract.id, buyer) == pending_contract
    assert ContractService.get_for_viewer(pending_contract.id, seller) == pending_contract
    assert ContractService.get_for_viewer(pending_contract.id, admin_user) == pending_contract
    with pytest.raises(NotAllowed):
        ContractService.get_for_viewer(pending_contract.id, outsider)


def test_list_scopes(negotiating_contract, buyer, seller, staff_user, admin_user):
    assert list(ContractService.list_for(buyer, "buyer")) == [negotiating_contract]
    assert list(ContractService.list_for(seller, "seller")) == [negotiating_contract]
    assert list(ContractService.list_for(staff_user, "staff")) == [negotiating_contract]
    assert list(ContractService.list_for(admin_user, "admin", status=Contract.PENDING)) == []
    with pytest.raises(NotAllowed):
        ContractService.list_for(buyer, "admin")
    with pytest.raises(ValidationFailed):
        ContractService.list_for(buyer, "notary")


def test_serialized_contract_never_exposes_codes(otp_contract, buyer, admin_user):
    for viewer in (buyer, admin_user):
        payload = serialize_contract(otp_contract, viewer)
        text = repr(payload)
        assert otp_contract.buyer_otp not in text
        assert otp_contract.seller_otp not in text
        assert "buyer_otp" not in payload
        assert payload["signing"]["buyer_otp_expires_at"] is not None


def test_serialized_fee_totals_depend_on_viewer(awaiting_sign_contract, buyer, staff_user):
    as_buyer = serialize_contract(awaiting_sign_contract, buyer)
    as_staff = serialize_contract(awaiting_sign_contract, staff_user)
    assert as_buyer["viewer_role"] == "buyer"
    assert as_buyer["my_fee_total"] == "2000000.00"
    assert "seller_fee_total" not in as_buyer
    assert as_staff["seller_fee_total"] == "500000.00"
    assert set(as_staff["fees"]) == set(FEE_FIELDS)


def test_otp_expiry_is_ten_minutes(otp_contract):
    delta = otp_contract.buyer_otp_expires_at - timezone.now()
    assert timedelta(minutes=9) < delta <= timedelta(minutes=10)
