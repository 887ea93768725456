"""
Représentation JSON des contrats et demandes d'achat
Les codes OTP ne sont jamais exposés, quel que soit le rôle du lecteur
"""
from accounts.models import Profile
from accounts.permissions import get_role
from .models import BUYER, SELLER, FEE_FIELDS


def _dt(value):
    return value.isoformat() if value else None


def _money(value):
    return str(value) if value is not None else None


def serialize_contract(contract, viewer):
    role = get_role(viewer)
    party = contract.party_of(viewer)

    data = {
        'id': contract.id,
        'status': contract.status,
        'buyer_id': contract.buyer_id,
        'seller_id': contract.seller_id,
        'staff_id': contract.staff_id,
        'post_id': contract.post_id,
        'request_id': contract.request_id,
        'agreed_price': _money(contract.agreed_price),
        'fees': {name: _money(amount) for name, amount in contract.fees().items()},
        'fee_responsibility': {name: contract.responsibility_for(name) for name in FEE_FIELDS},
        'total_extra_fees': _money(contract.total_extra_fees),
        'fees_note': contract.fees_note,
        'appointment': {
            'time': _dt(contract.appointment_time),
            'place': contract.appointment_place,
            'note': contract.appointment_note,
        },
        'signing': {
            'buyer_signed_at': _dt(contract.buyer_signed_at),
            'seller_signed_at': _dt(contract.seller_signed_at),
            'buyer_otp_expires_at': _dt(contract.buyer_otp_expires_at),
            'seller_otp_expires_at': _dt(contract.seller_otp_expires_at),
        },
        'signed_at': _dt(contract.signed_at),
        'completed_at': _dt(contract.completed_at),
        'cancel_reason': contract.cancel_reason,
        'notes': contract.notes,
        'created_at': _dt(contract.created_at),
        'updated_at': _dt(contract.updated_at),
        'viewer_role': party or role,
    }

    if party:
        data['my_fee_total'] = _money(contract.fee_total_for(party))
    if role in (Profile.ADMIN, Profile.STAFF):
        data['buyer_fee_total'] = _money(contract.fee_total_for(BUYER))
        data['seller_fee_total'] = _money(contract.fee_total_for(SELLER))
    return data


def serialize_purchase_request(purchase_request):
    contract = getattr(purchase_request, 'contract', None)
    return {
        'id': purchase_request.id,
        'status': purchase_request.status,
        'buyer_id': purchase_request.buyer_id,
        'seller_id': purchase_request.seller_id,
        'post_id': purchase_request.post_id,
        'message': purchase_request.message,
        'handled_by_id': purchase_request.handled_by_id,
        'handled_at': _dt(purchase_request.handled_at),
        'reject_reason': purchase_request.reject_reason,
        'expires_at': _dt(purchase_request.expires_at),
        'contract_id': contract.id if contract else None,
        'created_at': _dt(purchase_request.created_at),
    }
