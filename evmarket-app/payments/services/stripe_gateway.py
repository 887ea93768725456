"""
Adaptateur Stripe pour les paiements VIP
Seul point de contact avec l'API Stripe: sessions de paiement, abonnements,
produits/prix et vérification des webhooks
"""
from typing import Dict, List, Optional, Tuple
from django.conf import settings
import logging

import stripe

logger = logging.getLogger(__name__)


def _field(obj, key, default=None):
    """Lecture tolérante d'un champ sur un objet Stripe ou un dict"""
    if obj is None:
        return default
    try:
        value = obj[key]
    except (KeyError, TypeError, IndexError):
        return default
    return default if value is None else value


class StripeGateway:
    """
    Service pour interagir avec l'API Stripe
    Les erreurs de paramètres sont distinguées des pannes du prestataire
    """

    def __init__(self):
        """Initialise le service Stripe; les credentials sont lus dans les settings à chaque appel"""
        if not self.secret_key:
            logger.warning("Stripe credentials not configured")

    @property
    def secret_key(self):
        return getattr(settings, 'STRIPE_SECRET_KEY', '')

    @property
    def webhook_secret(self):
        return getattr(settings, 'STRIPE_WEBHOOK_SECRET', '')

    @property
    def success_url(self):
        return getattr(settings, 'VIP_SUCCESS_URL', '')

    @property
    def cancel_url(self):
        return getattr(settings, 'VIP_CANCEL_URL', '')

    def _client_options(self) -> Dict:
        return {'api_key': self.secret_key}

    def _failure(self, action: str, error: Exception) -> Tuple[bool, Dict]:
        if isinstance(error, stripe.InvalidRequestError):
            logger.warning(f"Stripe a refusé la requête ({action}): {error.user_message or error}")
            return False, {
                'error': error.user_message or str(error),
                'error_type': 'invalid_request',
                'param': getattr(error, 'param', None),
            }
        logger.error(f"Erreur Stripe ({action}): {error}")
        return False, {'error': str(error), 'error_type': 'api_error'}

    def create_checkout_session(self, mode: str, line_items: List[Dict], metadata: Dict,
                                idempotency_key: str, success_url: Optional[str] = None,
                                cancel_url: Optional[str] = None) -> Tuple[bool, Dict]:
        """
        Crée une session Checkout Stripe

        Args:
            mode: 'payment' ou 'subscription'
            line_items: lignes de facturation au format Stripe
            metadata: métadonnées recopiées sur la session (et l'abonnement)
            idempotency_key: clé d'idempotence côté Stripe (le code de commande)

        Returns:
            Tuple (success, {'url', 'session_id'} ou {'error', 'error_type'})
        """
        params = {
            'mode': mode,
            'line_items': line_items,
            'metadata': metadata,
            'client_reference_id': metadata.get('orderCode'),
            'success_url': success_url or self.success_url,
            'cancel_url': cancel_url or self.cancel_url,
        }
        if mode == 'subscription':
            params['subscription_data'] = {'metadata': metadata}
        else:
            params['payment_intent_data'] = {'metadata': metadata}

        try:
            session = stripe.checkout.Session.create(
                idempotency_key=idempotency_key, **params, **self._client_options())
        except stripe.StripeError as e:
            return self._failure('checkout.Session.create', e)

        logger.info(f"Session Stripe {session.id} créée pour {metadata.get('orderCode')}")
        return True, {'url': session.url, 'session_id': session.id}

    def retrieve_subscription(self, subscription_id: str) -> Optional[Dict]:
        """
        Récupère l'état d'un abonnement auprès de Stripe

        Returns:
            {'id', 'status', 'cancel_at_period_end', 'current_period_end'} ou None
        """
        if not subscription_id:
            return None
        try:
            subscription = stripe.Subscription.retrieve(subscription_id, **self._client_options())
        except stripe.StripeError as e:
            logger.error(f"Impossible de récupérer l'abonnement {subscription_id}: {e}")
            return None
        return self.describe_subscription(subscription)

    @staticmethod
    def describe_subscription(subscription) -> Dict:
        """
        Réduit un objet abonnement aux champs utiles
        Les versions récentes de l'API portent la fin de période sur les items
        """
        period_end = _field(subscription, 'current_period_end')
        if period_end is None:
            items = _field(_field(subscription, 'items'), 'data', [])
            if items:
                period_end = _field(items[0], 'current_period_end')
        return {
            'id': _field(subscription, 'id'),
            'status': _field(subscription, 'status'),
            'cancel_at_period_end': bool(_field(subscription, 'cancel_at_period_end', False)),
            'current_period_end': period_end,
        }

    def construct_event(self, payload: bytes, sig_header: str):
        """
        Vérifie la signature d'un webhook
        Lève ValueError ou stripe.SignatureVerificationError si invalide
        """
        return stripe.Webhook.construct_event(payload, sig_header, self.webhook_secret)

    def create_product(self, name: str, description: str = '', metadata: Optional[Dict] = None) -> Tuple[bool, Dict]:
        params = {'name': name, 'metadata': metadata or {}}
        if description:
            params['description'] = description
        try:
            product = stripe.Product.create(**params, **self._client_options())
        except stripe.StripeError as e:
            return self._failure('Product.create', e)
        return True, {'product_id': product.id}

    def create_price(self, product_id: str, unit_amount: int, currency: str,
                     recurring: Optional[Dict] = None) -> Tuple[bool, Dict]:
        params = {'product': product_id, 'unit_amount': unit_amount, 'currency': currency.lower()}
        if recurring:
            params['recurring'] = recurring
        try:
            price = stripe.Price.create(**params, **self._client_options())
        except stripe.StripeError as e:
            return self._failure('Price.create', e)
        return True, {'price_id': price.id}

    def archive_price(self, price_id: str) -> Tuple[bool, Dict]:
        """Désactive un ancien prix (Stripe ne permet pas de modifier un montant)"""
        try:
            stripe.Price.modify(price_id, active=False, **self._client_options())
        except stripe.StripeError as e:
            return self._failure('Price.modify', e)
        return True, {'price_id': price_id}


# Instance globale du service
stripe_gateway = StripeGateway()
