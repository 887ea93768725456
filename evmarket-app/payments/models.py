"""
Modèles pour les paiements VIP via Stripe
"""
from decimal import Decimal

from django.db import models
from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

# Devises sans sous-unité côté Stripe: le montant est envoyé tel quel
ZERO_DECIMAL_CURRENCIES = {
    'bif', 'clp', 'djf', 'gnf', 'jpy', 'kmf', 'krw', 'mga', 'pyg',
    'rwf', 'ugx', 'vnd', 'vuv', 'xaf', 'xof', 'xpf',
}


class VipPlan(models.Model):
    """
    Formule de mise en avant VIP vendue aux propriétaires d'annonces
    """
    ONE_TIME = 'one_time'
    SUBSCRIPTION = 'subscription'
    TYPE_CHOICES = [
        (ONE_TIME, _('Paiement unique')),
        (SUBSCRIPTION, _('Abonnement')),
    ]

    DAY = 'day'
    WEEK = 'week'
    MONTH = 'month'
    YEAR = 'year'
    INTERVAL_CHOICES = [
        (DAY, _('Jour')),
        (WEEK, _('Semaine')),
        (MONTH, _('Mois')),
        (YEAR, _('Année')),
    ]

    name = models.CharField(max_length=100, verbose_name=_("Nom"))
    slug = models.SlugField(max_length=100, unique=True, verbose_name=_("Slug"),
                            help_text=_("diamond, gold ou silver pour attribuer un niveau VIP"))
    description = models.TextField(blank=True, default='', verbose_name=_("Description"))
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=ONE_TIME, verbose_name=_("Type"))
    amount = models.DecimalField(max_digits=18, decimal_places=2, verbose_name=_("Montant"))
    currency = models.CharField(max_length=3, default='vnd', verbose_name=_("Devise"))
    duration_days = models.PositiveIntegerField(blank=True, null=True, verbose_name=_("Durée (jours)"))
    interval = models.CharField(max_length=10, choices=INTERVAL_CHOICES, blank=True, null=True,
                                verbose_name=_("Intervalle de facturation"))
    interval_count = models.PositiveIntegerField(blank=True, null=True, verbose_name=_("Nombre d'intervalles"))
    priority = models.PositiveIntegerField(default=0, verbose_name=_("Priorité"))
    is_active = models.BooleanField(default=True, verbose_name=_("Active"))

    stripe_product_id = models.CharField(max_length=100, blank=True, null=True, verbose_name=_("Produit Stripe"))
    stripe_price_id = models.CharField(max_length=100, blank=True, null=True, verbose_name=_("Prix Stripe"))

    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("Date de création"))
    updated_at = models.DateTimeField(auto_now=True, verbose_name=_("Date de mise à jour"))

    class Meta:
        ordering = ('-priority', 'amount')
        verbose_name = _("Formule VIP")
        verbose_name_plural = _("Formules VIP")

    def __str__(self):
        return f"{self.name} ({self.get_type_display()}) - {self.amount} {self.currency.upper()}"

    def clean(self):
        if self.type == self.ONE_TIME:
            if not self.duration_days:
                raise ValidationError(_("Une formule à paiement unique doit avoir une durée"))
            if self.interval or self.interval_count:
                raise ValidationError(_("Une formule à paiement unique n'a pas d'intervalle"))
        elif self.type == self.SUBSCRIPTION:
            if not self.interval or not self.interval_count:
                raise ValidationError(_("Un abonnement doit avoir un intervalle et un nombre d'intervalles"))
            if self.duration_days:
                raise ValidationError(_("Un abonnement n'a pas de durée fixe"))

    @property
    def is_subscription(self):
        return self.type == self.SUBSCRIPTION

    @property
    def tier(self):
        """Niveau VIP dérivé du slug, None si le slug n'est pas un niveau connu"""
        from listings.models import Post
        return self.slug if self.slug in Post.VIP_TIERS else None

    @property
    def unit_amount(self) -> int:
        """Montant dans la plus petite unité attendue par Stripe"""
        if self.currency.lower() in ZERO_DECIMAL_CURRENCIES:
            return int(self.amount)
        return int((self.amount * Decimal('100')).to_integral_value())


class VipPurchase(models.Model):
    """
    Ligne du registre des achats VIP, identifiée par un code de commande unique
    """
    PENDING = 'PENDING'
    PAID = 'PAID'
    CANCELED = 'CANCELED'
    FAILED = 'FAILED'

    STATUS_CHOICES = [
        (PENDING, _('En attente')),
        (PAID, _('Payé')),
        (CANCELED, _('Annulé')),
        (FAILED, _('Échoué')),
    ]

    VALID_TRANSITIONS = {
        PENDING: [PAID, FAILED, CANCELED],
        PAID: [],
        FAILED: [],
        CANCELED: [],
    }

    user = models.ForeignKey(
        User, on_delete=models.CASCADE, related_name='vip_purchases', verbose_name=_("Utilisateur"))
    post = models.ForeignKey(
        'listings.Post', on_delete=models.CASCADE, related_name='vip_purchases', verbose_name=_("Annonce"))
    vip_plan = models.ForeignKey(
        VipPlan, on_delete=models.SET_NULL, blank=True, null=True, related_name='purchases',
        verbose_name=_("Formule VIP"))

    order_code = models.CharField(max_length=40, unique=True, verbose_name=_("Code de commande"))
    amount = models.DecimalField(max_digits=18, decimal_places=2, verbose_name=_("Montant"))
    currency = models.CharField(max_length=3, default='vnd', verbose_name=_("Devise"))
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=PENDING, verbose_name=_("Statut"))
    provider = models.CharField(max_length=20, default='stripe', verbose_name=_("Prestataire"))

    checkout_session_id = models.CharField(max_length=255, blank=True, null=True, verbose_name=_("Session Stripe"))
    checkout_url = models.URLField(max_length=1000, blank=True, null=True, verbose_name=_("URL de paiement"))
    subscription_id = models.CharField(max_length=255, blank=True, null=True, db_index=True,
                                       verbose_name=_("Abonnement Stripe"))
    raw_payload = models.JSONField(default=dict, blank=True, verbose_name=_("Dernier payload Stripe"))
    failure_reason = models.TextField(blank=True, null=True, verbose_name=_("Motif d'échec"))

    paid_at = models.DateTimeField(blank=True, null=True, verbose_name=_("Date de paiement"))
    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("Date de création"))
    updated_at = models.DateTimeField(auto_now=True, verbose_name=_("Date de mise à jour"))

    class Meta:
        ordering = ('-created_at',)
        verbose_name = _("Achat VIP")
        verbose_name_plural = _("Achats VIP")
        indexes = [
            models.Index(fields=['user', 'post', 'status'], name='payments_vip_owner_idx'),
            models.Index(fields=['status'], name='payments_vip_status_idx'),
        ]

    def __str__(self):
        return f"Achat {self.order_code} - {self.amount} {self.currency.upper()} - {self.get_status_display()}"

    def can_transition_to(self, new_status):
        return new_status in self.VALID_TRANSITIONS.get(self.status, [])

    def _move_to(self, new_status, payload=None, **fields):
        if not self.can_transition_to(new_status):
            raise ValueError(f"Transition {self.status} -> {new_status} interdite pour {self.order_code}")
        self.status = new_status
        if payload is not None:
            self.raw_payload = payload
        for name, value in fields.items():
            setattr(self, name, value)
        self.save(update_fields=['status', 'raw_payload', 'updated_at', *fields.keys()])

    def mark_paid(self, payload=None, subscription_id=None):
        self._move_to(self.PAID, payload, paid_at=timezone.now(),
                      subscription_id=subscription_id or self.subscription_id)

    def mark_failed(self, reason, payload=None):
        self._move_to(self.FAILED, payload, failure_reason=reason)

    def mark_canceled(self, reason=None, payload=None):
        self._move_to(self.CANCELED, payload, failure_reason=reason)


class StripeWebhookLog(models.Model):
    """
    Journal des webhooks Stripe reçus, pour le rapprochement manuel
    """
    event_id = models.CharField(max_length=255, blank=True, null=True, verbose_name=_("ID événement"))
    event_type = models.CharField(max_length=100, verbose_name=_("Type d'événement"))
    payload = models.JSONField(default=dict, verbose_name=_("Payload reçu"))
    processed = models.BooleanField(default=False, verbose_name=_("Traité"))
    error_message = models.TextField(blank=True, null=True, verbose_name=_("Message d'erreur"))
    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("Date de réception"))

    class Meta:
        ordering = ('-created_at',)
        verbose_name = _("Log Webhook Stripe")
        verbose_name_plural = _("Logs Webhooks Stripe")
        indexes = [
            models.Index(fields=['event_type'], name='payments_hook_type_idx'),
        ]

    def __str__(self):
        return f"{self.event_type} ({self.event_id or '-'})"
