"""
Vues JSON du module contrats
L'utilisateur connecté est l'acteur; ses droits sont vérifiés par les services
"""
from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.views.decorators.http import require_http_methods

from core.http import api_view, json_body
from .serializers import serialize_contract, serialize_purchase_request
from .services import ContractService, PurchaseRequestService


def _contract_response(contract, user, status=200, **extra):
    payload = {'success': True, 'contract': serialize_contract(contract, user)}
    payload.update(extra)
    return JsonResponse(payload, status=status)


# Contrats

@login_required
@require_http_methods(["POST"])
@api_view
def create_contract(request):
    """Demande directe d'un contrat par l'acheteur"""
    data = json_body(request)
    contract = ContractService.create_direct(request.user, data.get('post_id'), data.get('notes'))
    return _contract_response(contract, request.user, status=201)


@login_required
@require_http_methods(["GET"])
@api_view
def contract_detail(request, contract_id):
    contract = ContractService.get_for_viewer(contract_id, request.user)
    return _contract_response(contract, request.user)


@login_required
@require_http_methods(["POST"])
@api_view
def assign_staff(request, contract_id):
    data = json_body(request)
    contract = ContractService.assign_staff(contract_id, request.user, data.get('staff_id'))
    return _contract_response(contract, request.user)


@login_required
@require_http_methods(["POST"])
@api_view
def record_appointment(request, contract_id):
    contract = ContractService.record_appointment(contract_id, request.user, json_body(request))
    return _contract_response(contract, request.user)


@login_required
@require_http_methods(["POST"])
@api_view
def finalize_contract(request, contract_id):
    contract = ContractService.finalize(contract_id, request.user, json_body(request))
    return _contract_response(contract, request.user)


@login_required
@require_http_methods(["POST"])
@api_view
def send_draft(request, contract_id):
    contract = ContractService.send_draft(contract_id, request.user)
    return _contract_response(contract, request.user, message="Projet de contrat envoyé aux deux parties")


@login_required
@require_http_methods(["POST"])
@api_view
def send_otp(request, contract_id):
    contract = ContractService.send_otp(contract_id, request.user)
    return _contract_response(contract, request.user, message="Codes de signature envoyés")


@login_required
@require_http_methods(["POST"])
@api_view
def verify_otp(request, contract_id):
    data = json_body(request)
    contract = ContractService.verify_otp(contract_id, request.user, data.get('otp'))
    return _contract_response(contract, request.user, message="Signature enregistrée")


@login_required
@require_http_methods(["POST"])
@api_view
def send_final(request, contract_id):
    contract = ContractService.send_final(contract_id, request.user)
    return _contract_response(contract, request.user, message="Contrat final envoyé aux deux parties")


@login_required
@require_http_methods(["POST"])
@api_view
def cancel_contract(request, contract_id):
    data = json_body(request)
    contract = ContractService.cancel(contract_id, request.user, data.get('reason'))
    return _contract_response(contract, request.user)


@login_required
@require_http_methods(["GET"])
@api_view
def list_contracts(request, scope):
    contracts = ContractService.list_for(request.user, scope, request.GET.get('status'))
    return JsonResponse({
        'success': True,
        'contracts': [serialize_contract(c, request.user) for c in contracts],
    })


# Demandes d'achat

@login_required
@require_http_methods(["POST"])
@api_view
def create_purchase_request(request):
    data = json_body(request)
    purchase_request = PurchaseRequestService.create(request.user, data.get('post_id'), data.get('message'))
    return JsonResponse({'success': True, 'request': serialize_purchase_request(purchase_request)}, status=201)


@login_required
@require_http_methods(["GET"])
@api_view
def purchase_request_detail(request, request_id):
    purchase_request = PurchaseRequestService.get_for_viewer(request_id, request.user)
    return JsonResponse({'success': True, 'request': serialize_purchase_request(purchase_request)})


@login_required
@require_http_methods(["POST"])
@api_view
def accept_purchase_request(request, request_id):
    purchase_request, contract = PurchaseRequestService.accept(request_id, request.user)
    return JsonResponse({
        'success': True,
        'request': serialize_purchase_request(purchase_request),
        'contract': serialize_contract(contract, request.user),
    })


@login_required
@require_http_methods(["POST"])
@api_view
def reject_purchase_request(request, request_id):
    data = json_body(request)
    purchase_request = PurchaseRequestService.reject(request_id, request.user, data.get('reason'))
    return JsonResponse({'success': True, 'request': serialize_purchase_request(purchase_request)})


@login_required
@require_http_methods(["POST"])
@api_view
def withdraw_purchase_request(request, request_id):
    purchase_request = PurchaseRequestService.withdraw(request_id, request.user)
    return JsonResponse({'success': True, 'request': serialize_purchase_request(purchase_request)})


@login_required
@require_http_methods(["GET"])
@api_view
def my_purchase_requests(request):
    requests = PurchaseRequestService.list_mine(request.user, request.GET.get('status'))
    return JsonResponse({'success': True, 'requests': [serialize_purchase_request(r) for r in requests]})


@login_required
@require_http_methods(["GET"])
@api_view
def post_purchase_requests(request, post_id):
    requests = PurchaseRequestService.list_for_post(post_id, request.user, request.GET.get('status'))
    return JsonResponse({'success': True, 'requests': [serialize_purchase_request(r) for r in requests]})
