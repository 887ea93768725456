"""
Vues pour les paiements VIP Stripe
"""
from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods
import json
import logging

import stripe

from accounts.permissions import is_admin
from core.exceptions import NotAllowed
from core.http import api_view, json_body
from .services.stripe_gateway import stripe_gateway
from .services.vip import VipCheckoutService, VipPlanService, VipReconciliationService

logger = logging.getLogger(__name__)


@require_http_methods(["GET"])
@api_view
def list_vip_plans(request):
    """Formules VIP actives, par priorité décroissante"""
    plans = VipPlanService.list_active()
    return JsonResponse({'success': True, 'plans': [VipPlanService.serialize(p) for p in plans]})


@login_required
@require_http_methods(["POST"])
@api_view
def create_vip_checkout(request):
    """
    Démarre le paiement VIP d'une annonce
    Si un paiement est déjà en attente, renvoie 409 avec son code pour reprise
    """
    data = json_body(request)
    purchase, resumed = VipCheckoutService.create_checkout(
        request.user, data.get('planId'), data.get('postId'))

    if resumed:
        return JsonResponse({
            'success': False,
            'error': 'Un paiement est déjà en attente pour cette annonce',
            'code': 'pending_purchase',
            'resumed': True,
            'orderCode': purchase.order_code,
            'url': purchase.checkout_url,
        }, status=409)

    return JsonResponse({
        'success': True,
        'orderCode': purchase.order_code,
        'url': purchase.checkout_url,
    }, status=201)


@csrf_exempt
@require_http_methods(["POST"])
def stripe_webhook(request):
    """
    Webhook Stripe
    Seule une signature invalide est rejetée; tout le reste est acquitté
    """
    payload = request.body
    sig_header = request.META.get('HTTP_STRIPE_SIGNATURE', '')

    try:
        stripe_gateway.construct_event(payload, sig_header)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning(f"Webhook Stripe rejeté: {e}")
        return JsonResponse({'received': False, 'error': 'Signature invalide'}, status=400)

    try:
        event = json.loads(payload)
        VipReconciliationService.process_webhook(event)
    except Exception:
        logger.exception("Erreur dans stripe_webhook, événement acquitté sans traitement")

    return JsonResponse({'received': True})


def _require_admin(user):
    if not is_admin(user):
        raise NotAllowed("Action réservée aux administrateurs")


@login_required
@require_http_methods(["POST"])
@api_view
def admin_create_plan(request):
    _require_admin(request.user)
    plan = VipPlanService.create_plan(json_body(request))
    return JsonResponse({'success': True, 'plan': VipPlanService.serialize(plan)}, status=201)


@login_required
@require_http_methods(["POST"])
@api_view
def admin_update_plan(request, plan_id):
    _require_admin(request.user)
    plan = VipPlanService.update_plan(plan_id, json_body(request))
    return JsonResponse({'success': True, 'plan': VipPlanService.serialize(plan)})


@login_required
@require_http_methods(["POST"])
@api_view
def admin_toggle_plan(request, plan_id):
    _require_admin(request.user)
    plan = VipPlanService.toggle_plan(plan_id)
    return JsonResponse({'success': True, 'plan': VipPlanService.serialize(plan)})
