"""
Services VIP: création des paiements, rapprochement des webhooks Stripe
et administration des formules
"""
from datetime import datetime, timedelta, timezone as dt_timezone
import logging
import secrets
import time

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from django.utils.text import slugify

from core.amounts import parse_amount, parse_positive_int
from core.exceptions import Conflict, GatewayRejected, NotAllowed, NotFound, ValidationFailed
from listings.models import Post
from payments.models import StripeWebhookLog, VipPlan, VipPurchase
from payments.services.stripe_gateway import StripeGateway, stripe_gateway

logger = logging.getLogger(__name__)

DEFAULT_DURATION_DAYS = 30
# Durée de vie d'une session Checkout chez Stripe
CHECKOUT_SESSION_LIFETIME = timedelta(hours=24)
DEACTIVATING_SUBSCRIPTION_STATUSES = ('canceled', 'past_due', 'unpaid')


def generate_order_code():
    """Code de commande: VIP + timestamp en millisecondes + 3 chiffres aléatoires"""
    return f"VIP{int(time.time() * 1000)}{secrets.randbelow(1000):03d}"


def default_duration_days():
    return getattr(settings, 'VIP_DEFAULT_DURATION_DAYS', DEFAULT_DURATION_DAYS)


def from_timestamp(value):
    if value in (None, ''):
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=dt_timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None


class VipCheckoutService:
    """Création des sessions de paiement VIP"""

    @staticmethod
    def build_line_items(plan: VipPlan):
        if plan.stripe_price_id:
            return [{'price': plan.stripe_price_id, 'quantity': 1}]
        price_data = {
            'currency': plan.currency.lower(),
            'unit_amount': plan.unit_amount,
            'product_data': {'name': plan.name},
        }
        if plan.is_subscription:
            price_data['recurring'] = {'interval': plan.interval, 'interval_count': plan.interval_count}
        return [{'price_data': price_data, 'quantity': 1}]

    @staticmethod
    def create_checkout(user, plan_id, post_id):
        """
        Crée (ou reprend) un paiement VIP pour une annonce

        Returns:
            Tuple (VipPurchase, resumed) ; resumed vaut True si un paiement
            en attente existait déjà pour ce couple utilisateur/annonce
        """
        plan_id = parse_positive_int(plan_id, 'planId')
        post_id = parse_positive_int(post_id, 'postId')

        post = Post.objects.filter(pk=post_id).first()
        if post is None:
            raise NotFound("Annonce introuvable")
        if post.user_id != user.id:
            raise NotAllowed("Vous ne pouvez promouvoir que vos propres annonces")

        plan = VipPlan.objects.filter(pk=plan_id, is_active=True).first()
        if plan is None:
            raise NotFound("Formule VIP introuvable ou inactive")

        if post.is_sold:
            raise Conflict("Cette annonce est déjà vendue")
        if post.is_vip_live():
            raise Conflict("Cette annonce est déjà VIP")

        # Déduplication opportuniste: la clé d'idempotence Stripe couvre le reste
        existing = VipPurchase.objects.filter(
            user=user, post=post, status=VipPurchase.PENDING
        ).order_by('-created_at').first()
        if existing and existing.created_at <= timezone.now() - CHECKOUT_SESSION_LIFETIME:
            existing.mark_canceled("Session de paiement expirée")
            logger.info(f"Paiement VIP {existing.order_code} abandonné, annulé avant un nouvel essai")
            existing = None
        if existing and existing.checkout_url:
            logger.info(f"Paiement VIP {existing.order_code} déjà en attente pour l'annonce #{post.id}")
            return existing, True

        if existing:
            # Session jamais confirmée: même code, donc même clé d'idempotence chez Stripe
            purchase = existing
            plan = existing.vip_plan or plan
        else:
            purchase = VipPurchase.objects.create(
                user=user,
                post=post,
                vip_plan=plan,
                order_code=generate_order_code(),
                amount=plan.amount,
                currency=plan.currency,
                status=VipPurchase.PENDING,
            )
        return VipCheckoutService.open_session(purchase, plan), False

    @staticmethod
    def open_session(purchase: VipPurchase, plan: VipPlan):
        """
        Ouvre la session Stripe d'un achat en attente

        Un refus de paramètres passe l'achat en échec. Une panne ou un délai
        dépassé laisse l'achat en attente: la session a pu être créée et
        sera retrouvée au prochain essai grâce à la clé d'idempotence.
        """
        order_code = purchase.order_code
        metadata = {
            'orderCode': order_code,
            'userId': str(purchase.user_id),
            'planId': str(plan.id),
            'postId': str(purchase.post_id),
            'type': plan.type,
            'durationDays': str(plan.duration_days or ''),
        }
        success, data = stripe_gateway.create_checkout_session(
            mode='subscription' if plan.is_subscription else 'payment',
            line_items=VipCheckoutService.build_line_items(plan),
            metadata=metadata,
            idempotency_key=order_code,
        )
        if not success:
            if data.get('error_type') == 'invalid_request':
                purchase.mark_failed(data.get('error'))
                raise GatewayRejected(f"Paiement refusé par Stripe: {data.get('error')}", param=data.get('param'))
            logger.error(f"Session Stripe incertaine pour {order_code}, l'achat reste en attente: {data.get('error')}")
            raise RuntimeError(f"Création de la session Stripe impossible pour {order_code}")

        purchase.checkout_session_id = data['session_id']
        purchase.checkout_url = data['url']
        purchase.save(update_fields=['checkout_session_id', 'checkout_url', 'updated_at'])
        logger.info(f"Paiement VIP {order_code} créé pour l'annonce #{purchase.post_id} (formule {plan.slug})")
        return purchase


class VipReconciliationService:
    """
    Applique les événements Stripe aux annonces en s'appuyant sur le registre des achats
    """

    @classmethod
    def process_webhook(cls, event: dict):
        """
        Journalise puis traite un événement déjà vérifié
        Les erreurs sont journalisées sans être propagées: Stripe doit toujours
        recevoir un accusé de réception
        """
        event_type = event.get('type', '')
        log = StripeWebhookLog.objects.create(
            event_id=event.get('id'), event_type=event_type, payload=event)
        try:
            outcome = cls.handle_event(event)
        except Exception as e:
            logger.exception(f"Échec du traitement du webhook {event_type} ({event.get('id')}), rapprochement manuel requis")
            log.error_message = str(e)
            log.save(update_fields=['error_message'])
            return 'error'
        log.processed = True
        log.save(update_fields=['processed'])
        logger.info(f"Webhook {event_type} traité: {outcome}")
        return outcome

    @classmethod
    def handle_event(cls, event: dict):
        handlers = {
            'checkout.session.completed': cls.handle_checkout_completed,
            'checkout.session.expired': cls.handle_checkout_expired,
            'customer.subscription.deleted': cls.handle_subscription_deleted,
            'invoice.payment_failed': cls.handle_invoice_payment_failed,
            'customer.subscription.updated': cls.handle_subscription_updated,
        }
        handler = handlers.get(event.get('type'))
        if handler is None:
            return 'ignored'
        obj = (event.get('data') or {}).get('object') or {}
        return handler(obj)

    @staticmethod
    def compute_expiry(plan, metadata, subscription_id, now):
        """
        Fin de période VIP: fin de période de l'abonnement Stripe si disponible,
        sinon maintenant + durée de la formule (durée par défaut en dernier recours)
        """
        if subscription_id:
            subscription = stripe_gateway.retrieve_subscription(subscription_id)
            period_end = from_timestamp(subscription and subscription.get('current_period_end'))
            if period_end:
                return period_end
            logger.warning(f"Fin de période inconnue pour l'abonnement {subscription_id}, durée par défaut appliquée")

        days = plan.duration_days if plan and plan.duration_days else None
        if not days:
            try:
                days = int(metadata.get('durationDays') or 0)
            except (TypeError, ValueError):
                days = 0
        return now + timedelta(days=days or default_duration_days())

    @staticmethod
    @transaction.atomic
    def handle_checkout_completed(session: dict):
        metadata = session.get('metadata') or {}
        order_code = metadata.get('orderCode') or session.get('client_reference_id')
        if not order_code:
            logger.warning("checkout.session.completed sans code de commande")
            return 'missing_order_code'

        purchase = VipPurchase.objects.select_for_update().filter(order_code=order_code).first()
        if purchase is None:
            logger.warning(f"Aucun achat VIP pour le code {order_code}")
            return 'unknown_order'
        if purchase.status == VipPurchase.PAID:
            # Rejeu d'un événement déjà appliqué
            return 'already_processed'
        if purchase.status != VipPurchase.PENDING:
            logger.error(
                f"Paiement reçu pour l'achat VIP {order_code} au statut {purchase.status}, "
                f"rapprochement manuel requis (session {session.get('id')})")
            return 'needs_review'

        post = Post.objects.select_for_update().filter(pk=purchase.post_id).first()
        paying_user = metadata.get('userId')
        if post is None or post.user_id != purchase.user_id or (
                paying_user and str(paying_user) != str(purchase.user_id)):
            purchase.mark_failed("Le propriétaire de l'annonce ne correspond pas au payeur", payload=session)
            logger.warning(f"Achat VIP {order_code} rejeté: propriétaire différent du payeur")
            return 'owner_mismatch'

        plan = purchase.vip_plan
        if plan is None and metadata.get('planId'):
            plan = VipPlan.objects.filter(pk=metadata.get('planId')).first()

        subscription_id = session.get('subscription')
        if isinstance(subscription_id, dict):
            subscription_id = subscription_id.get('id')

        now = timezone.now()
        expires_at = VipReconciliationService.compute_expiry(plan, metadata, subscription_id, now)
        purchase.mark_paid(payload=session, subscription_id=subscription_id)
        post.activate_vip(plan, plan.tier if plan else None, expires_at, now)
        logger.info(f"Annonce #{post.id} VIP jusqu'au {expires_at.isoformat()} ({order_code})")
        return 'activated'

    @staticmethod
    @transaction.atomic
    def handle_checkout_expired(session: dict):
        """Session abandonnée: l'achat en attente est annulé"""
        metadata = session.get('metadata') or {}
        order_code = metadata.get('orderCode') or session.get('client_reference_id')
        if not order_code:
            return 'missing_order_code'

        purchase = VipPurchase.objects.select_for_update().filter(order_code=order_code).first()
        if purchase is None:
            logger.warning(f"Aucun achat VIP pour le code {order_code}")
            return 'unknown_order'
        if purchase.status != VipPurchase.PENDING:
            return 'already_processed'
        if purchase.checkout_session_id and session.get('id') and purchase.checkout_session_id != session.get('id'):
            return 'ignored'

        purchase.mark_canceled("Session de paiement expirée", payload=session)
        logger.info(f"Achat VIP {order_code} annulé, session {session.get('id')} expirée")
        return 'canceled'

    @staticmethod
    def find_paid_purchase(subscription_id):
        """
        Retrouve l'achat payé lié à un abonnement Stripe
        Colonne indexée d'abord, puis parcours des payloads bruts des anciens achats
        """
        if not subscription_id:
            return None
        purchase = VipPurchase.objects.filter(
            status=VipPurchase.PAID, subscription_id=subscription_id
        ).select_related('post').order_by('-paid_at').first()
        if purchase:
            return purchase

        legacy = VipPurchase.objects.filter(status=VipPurchase.PAID, subscription_id__isnull=True)
        for candidate in legacy.select_related('post').iterator():
            if (candidate.raw_payload or {}).get('subscription') == subscription_id:
                candidate.subscription_id = subscription_id
                candidate.save(update_fields=['subscription_id', 'updated_at'])
                return candidate
        return None

    @classmethod
    def deactivate_for_subscription(cls, subscription_id, reason):
        purchase = cls.find_paid_purchase(subscription_id)
        if purchase is None:
            logger.warning(f"Aucun achat VIP payé pour l'abonnement {subscription_id} ({reason})")
            return 'unknown_subscription'
        post = purchase.post
        if post.is_vip or post.is_active:
            post.deactivate_vip()
            logger.info(f"Annonce #{post.id} retirée du VIP ({reason})")
        return 'deactivated'

    @classmethod
    def handle_subscription_deleted(cls, subscription: dict):
        return cls.deactivate_for_subscription(subscription.get('id'), 'abonnement supprimé')

    @classmethod
    def handle_invoice_payment_failed(cls, invoice: dict):
        subscription_id = invoice.get('subscription')
        if not subscription_id:
            details = ((invoice.get('parent') or {}).get('subscription_details') or {})
            subscription_id = details.get('subscription')
        if isinstance(subscription_id, dict):
            subscription_id = subscription_id.get('id')
        return cls.deactivate_for_subscription(subscription_id, 'échec de paiement de facture')

    @classmethod
    def handle_subscription_updated(cls, subscription: dict):
        state = StripeGateway.describe_subscription(subscription)
        status = state['status']
        if status in DEACTIVATING_SUBSCRIPTION_STATUSES:
            return cls.deactivate_for_subscription(state['id'], f"abonnement {status}")
        if status != 'active':
            return 'ignored'

        purchase = cls.find_paid_purchase(state['id'])
        if purchase is None:
            logger.warning(f"Aucun achat VIP payé pour l'abonnement {state['id']}")
            return 'unknown_subscription'

        post = purchase.post
        period_end = from_timestamp(state['current_period_end'])
        if period_end is None:
            return 'ignored'

        if state['cancel_at_period_end']:
            # Plus de renouvellement: le VIP reste actif jusqu'à la fin de période
            if post.vip_expires_at is None or post.vip_expires_at > period_end:
                post.vip_expires_at = period_end
                post.save(update_fields=['vip_expires_at', 'updated_at'])
            return 'capped'

        if period_end > timezone.now() and (
                not post.is_vip or post.vip_expires_at is None or post.vip_expires_at < period_end):
            post.is_vip = True
            post.is_active = True
            post.vip_expires_at = period_end
            post.save(update_fields=['is_vip', 'is_active', 'vip_expires_at', 'updated_at'])
            return 'renewed'
        return 'unchanged'


class VipPlanService:
    """Administration des formules VIP et de leurs prix Stripe"""

    @staticmethod
    def list_active():
        return VipPlan.objects.filter(is_active=True).order_by('-priority', 'amount')

    @staticmethod
    def serialize(plan: VipPlan):
        return {
            'id': plan.id,
            'name': plan.name,
            'slug': plan.slug,
            'tier': plan.tier,
            'description': plan.description,
            'type': plan.type,
            'amount': str(plan.amount),
            'currency': plan.currency,
            'duration_days': plan.duration_days,
            'interval': plan.interval,
            'interval_count': plan.interval_count,
            'priority': plan.priority,
            'is_active': plan.is_active,
        }

    @staticmethod
    def _clean_terms(data, current=None):
        """Valide le type et la périodicité d'une formule"""
        plan_type = data.get('type', current.type if current else VipPlan.ONE_TIME)
        if plan_type not in dict(VipPlan.TYPE_CHOICES):
            raise ValidationFailed(f"Type de formule inconnu: {plan_type}")

        terms = {'type': plan_type}
        if plan_type == VipPlan.ONE_TIME:
            duration = data.get('duration_days', current.duration_days if current else None)
            terms['duration_days'] = parse_positive_int(duration, 'duration_days')
            terms['interval'] = None
            terms['interval_count'] = None
        else:
            interval = data.get('interval', current.interval if current else None)
            if interval not in dict(VipPlan.INTERVAL_CHOICES):
                raise ValidationFailed(f"Intervalle de facturation invalide: {interval}")
            interval_count = data.get('interval_count', current.interval_count if current else 1)
            terms['interval'] = interval
            terms['interval_count'] = parse_positive_int(interval_count, 'interval_count')
            terms['duration_days'] = None
        return terms

    @staticmethod
    def _create_stripe_price(plan: VipPlan):
        recurring = None
        if plan.is_subscription:
            recurring = {'interval': plan.interval, 'interval_count': plan.interval_count}
        success, data = stripe_gateway.create_price(
            plan.stripe_product_id, plan.unit_amount, plan.currency, recurring=recurring)
        if not success:
            if data.get('error_type') == 'invalid_request':
                raise GatewayRejected(f"Prix refusé par Stripe: {data.get('error')}")
            raise RuntimeError(f"Création du prix Stripe impossible pour la formule {plan.slug}")
        return data['price_id']

    @staticmethod
    @transaction.atomic
    def create_plan(data):
        name = (data.get('name') or '').strip()
        if not name:
            raise ValidationFailed("Le nom de la formule est obligatoire")
        slug = slugify(data.get('slug') or name)
        if VipPlan.objects.filter(slug=slug).exists():
            raise Conflict(f"Une formule utilise déjà le slug {slug}")

        plan = VipPlan(
            name=name,
            slug=slug,
            description=data.get('description') or '',
            amount=parse_amount(data.get('amount'), 'amount', allow_zero=False),
            currency=(data.get('currency') or 'vnd').lower(),
            priority=int(data.get('priority') or 0),
            is_active=bool(data.get('is_active', True)),
            **VipPlanService._clean_terms(data),
        )

        success, product = stripe_gateway.create_product(
            name, plan.description, metadata={'slug': slug})
        if not success:
            if product.get('error_type') == 'invalid_request':
                raise GatewayRejected(f"Produit refusé par Stripe: {product.get('error')}")
            raise RuntimeError(f"Création du produit Stripe impossible pour la formule {slug}")
        plan.stripe_product_id = product['product_id']
        plan.stripe_price_id = VipPlanService._create_stripe_price(plan)
        plan.save()
        logger.info(f"Formule VIP {slug} créée ({plan.stripe_price_id})")
        return plan

    @staticmethod
    @transaction.atomic
    def update_plan(plan_id, data):
        plan = VipPlan.objects.select_for_update().filter(pk=plan_id).first()
        if plan is None:
            raise NotFound("Formule VIP introuvable")

        old_price_key = (plan.amount, plan.currency, plan.type, plan.interval, plan.interval_count)
        if 'name' in data:
            if not (data.get('name') or '').strip():
                raise ValidationFailed("Le nom de la formule est obligatoire")
            plan.name = data['name'].strip()
        if 'description' in data:
            plan.description = data.get('description') or ''
        if 'priority' in data:
            plan.priority = int(data.get('priority') or 0)
        if 'is_active' in data:
            plan.is_active = bool(data['is_active'])
        if 'amount' in data:
            plan.amount = parse_amount(data.get('amount'), 'amount', allow_zero=False)
        if 'currency' in data:
            plan.currency = (data.get('currency') or plan.currency).lower()
        for field, value in VipPlanService._clean_terms(data, current=plan).items():
            setattr(plan, field, value)

        new_price_key = (plan.amount, plan.currency, plan.type, plan.interval, plan.interval_count)
        if new_price_key != old_price_key and plan.stripe_product_id:
            old_price_id = plan.stripe_price_id
            plan.stripe_price_id = VipPlanService._create_stripe_price(plan)
            if old_price_id:
                stripe_gateway.archive_price(old_price_id)
        plan.save()
        logger.info(f"Formule VIP {plan.slug} mise à jour")
        return plan

    @staticmethod
    def toggle_plan(plan_id):
        plan = VipPlan.objects.filter(pk=plan_id).first()
        if plan is None:
            raise NotFound("Formule VIP introuvable")
        plan.is_active = not plan.is_active
        plan.save(update_fields=['is_active', 'updated_at'])
        logger.info(f"Formule VIP {plan.slug} {'activée' if plan.is_active else 'désactivée'}")
        return plan
