"""
Modèles des contrats de vente entre particuliers
Une demande d'achat acceptée (ou une demande directe de l'acheteur) ouvre un
contrat, négocié par un membre du staff puis signé par OTP des deux côtés
"""
from decimal import Decimal

from django.db import models
from django.db.models import F, Q
from django.contrib.auth.models import User
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core.exceptions import Conflict

BUYER = 'buyer'
SELLER = 'seller'
PARTIES = (BUYER, SELLER)

FEE_FIELDS = (
    'brokerage_fee',
    'title_transfer_fee',
    'legal_and_condition_check_fee',
    'admin_processing_fee',
    'reinspection_or_registration_support_fee',
)


def default_fee_responsibility():
    """Répartition par défaut des frais entre acheteur et vendeur"""
    return {
        'brokerage_fee': SELLER,
        'title_transfer_fee': BUYER,
        'legal_and_condition_check_fee': BUYER,
        'admin_processing_fee': SELLER,
        'reinspection_or_registration_support_fee': SELLER,
    }


class PurchaseRequest(models.Model):
    """
    Demande d'achat d'un acheteur sur une annonce, préalable au contrat
    """
    PENDING = 'pending'
    ACCEPTED = 'accepted'
    REJECTED = 'rejected'
    WITHDRAWN = 'withdrawn'
    EXPIRED = 'expired'

    STATUS_CHOICES = [
        (PENDING, _('En attente')),
        (ACCEPTED, _('Acceptée')),
        (REJECTED, _('Refusée')),
        (WITHDRAWN, _('Retirée')),
        (EXPIRED, _('Expirée')),
    ]

    buyer = models.ForeignKey(
        User, on_delete=models.CASCADE, related_name='purchase_requests_sent', verbose_name=_("Acheteur"))
    seller = models.ForeignKey(
        User, on_delete=models.CASCADE, related_name='purchase_requests_received', verbose_name=_("Vendeur"))
    post = models.ForeignKey(
        'listings.Post', on_delete=models.CASCADE, related_name='purchase_requests', verbose_name=_("Annonce"))
    message = models.TextField(blank=True, default='', verbose_name=_("Message"))
    status = models.CharField(max_length=13, choices=STATUS_CHOICES, default=PENDING, verbose_name=_("Statut"))
    handled_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, blank=True, null=True, related_name='purchase_requests_handled',
        verbose_name=_("Traitée par"))
    handled_at = models.DateTimeField(blank=True, null=True, verbose_name=_("Date de traitement"))
    reject_reason = models.TextField(blank=True, null=True, verbose_name=_("Motif du refus"))
    expires_at = models.DateTimeField(verbose_name=_("Date d'expiration"))
    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("Date de création"))
    updated_at = models.DateTimeField(auto_now=True, verbose_name=_("Date de mise à jour"))

    class Meta:
        ordering = ('-created_at',)
        verbose_name = _("Demande d'achat")
        verbose_name_plural = _("Demandes d'achat")
        constraints = [
            models.UniqueConstraint(
                fields=['buyer', 'post'], condition=Q(status='pending'),
                name='purchase_request_one_pending'),
        ]
        indexes = [
            models.Index(fields=['status', 'expires_at'], name='contracts_req_expiry_idx'),
        ]

    def __str__(self):
        return f"Demande #{self.id} - {self.buyer.username} sur annonce #{self.post_id} ({self.status})"

    def is_stale(self, now=None):
        now = now or timezone.now()
        return self.status == self.PENDING and self.expires_at <= now

    def expire_if_stale(self, now=None):
        """Passe la demande en expirée si son délai est dépassé"""
        if not self.is_stale(now):
            return False
        self.status = self.EXPIRED
        self.save(update_fields=['status', 'updated_at'])
        return True


class Contract(models.Model):
    """
    Contrat de vente négocié par le staff et signé par OTP
    """
    PENDING = 'pending'
    NEGOTIATING = 'negotiating'
    AWAITING_SIGN = 'awaiting_sign'
    SIGNED = 'signed'
    NOTARIZING = 'notarizing'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (PENDING, _('En attente')),
        (NEGOTIATING, _('En négociation')),
        (AWAITING_SIGN, _('En attente de signature')),
        (SIGNED, _('Signé')),
        (NOTARIZING, _('Chez le notaire')),
        (COMPLETED, _('Terminé')),
        (CANCELLED, _('Annulé')),
    ]

    ACTIVE_STATUSES = (PENDING, NEGOTIATING, AWAITING_SIGN, SIGNED, NOTARIZING)
    TERMINAL_STATUSES = (COMPLETED, CANCELLED)

    # Événements du cycle de vie
    ASSIGN_STAFF = 'assign_staff'
    RECORD_APPOINTMENT = 'record_appointment'
    FINALIZE = 'finalize'
    SEND_DRAFT = 'send_draft'
    SEND_OTP = 'send_otp'
    SIGN = 'sign'
    COMPLETE_SIGNING = 'complete_signing'
    SEND_FINAL = 'send_final'
    CANCEL = 'cancel'

    # événement -> (statuts de départ autorisés, statut d'arrivée; None = inchangé)
    # notarizing est réservé: aucun événement n'y mène
    TRANSITIONS = {
        ASSIGN_STAFF: ((PENDING, NEGOTIATING), NEGOTIATING),
        RECORD_APPOINTMENT: ((PENDING, NEGOTIATING), NEGOTIATING),
        FINALIZE: ((NEGOTIATING, AWAITING_SIGN), AWAITING_SIGN),
        SEND_DRAFT: ((NEGOTIATING, AWAITING_SIGN), None),
        SEND_OTP: ((AWAITING_SIGN,), None),
        SIGN: ((AWAITING_SIGN,), None),
        COMPLETE_SIGNING: ((AWAITING_SIGN,), SIGNED),
        SEND_FINAL: ((SIGNED,), COMPLETED),
        CANCEL: (ACTIVE_STATUSES, CANCELLED),
    }

    buyer = models.ForeignKey(
        User, on_delete=models.CASCADE, related_name='contracts_as_buyer', verbose_name=_("Acheteur"))
    seller = models.ForeignKey(
        User, on_delete=models.CASCADE, related_name='contracts_as_seller', verbose_name=_("Vendeur"))
    staff = models.ForeignKey(
        User, on_delete=models.SET_NULL, blank=True, null=True, related_name='contracts_as_staff',
        verbose_name=_("Staff assigné"))
    post = models.ForeignKey(
        'listings.Post', on_delete=models.CASCADE, related_name='contracts', verbose_name=_("Annonce"))
    request = models.OneToOneField(
        PurchaseRequest, on_delete=models.SET_NULL, blank=True, null=True, related_name='contract',
        verbose_name=_("Demande d'achat"))

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING, verbose_name=_("Statut"))

    # Conditions commerciales
    agreed_price = models.DecimalField(
        max_digits=18, decimal_places=2, blank=True, null=True, verbose_name=_("Prix convenu"))
    brokerage_fee = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal('0'), verbose_name=_("Frais de courtage"))
    title_transfer_fee = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal('0'), verbose_name=_("Frais de transfert de titre"))
    legal_and_condition_check_fee = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal('0'), verbose_name=_("Frais de contrôle juridique et technique"))
    admin_processing_fee = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal('0'), verbose_name=_("Frais de dossier"))
    reinspection_or_registration_support_fee = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal('0'),
        verbose_name=_("Frais de contre-visite ou d'immatriculation"))
    fee_responsibility = models.JSONField(
        default=default_fee_responsibility, verbose_name=_("Répartition des frais"))
    fees_note = models.TextField(blank=True, default='', verbose_name=_("Note sur les frais"))

    # Rendez-vous
    appointment_time = models.DateTimeField(blank=True, null=True, verbose_name=_("Date du rendez-vous"))
    appointment_place = models.CharField(max_length=255, blank=True, default='', verbose_name=_("Lieu du rendez-vous"))
    appointment_note = models.TextField(blank=True, default='', verbose_name=_("Note du rendez-vous"))

    # Signature acheteur
    buyer_otp = models.CharField(max_length=6, blank=True, null=True, verbose_name=_("OTP acheteur"))
    buyer_otp_expires_at = models.DateTimeField(blank=True, null=True, verbose_name=_("Expiration OTP acheteur"))
    buyer_otp_attempts = models.PositiveSmallIntegerField(default=0, verbose_name=_("Tentatives OTP acheteur"))
    buyer_signed_at = models.DateTimeField(blank=True, null=True, verbose_name=_("Signé par l'acheteur le"))

    # Signature vendeur
    seller_otp = models.CharField(max_length=6, blank=True, null=True, verbose_name=_("OTP vendeur"))
    seller_otp_expires_at = models.DateTimeField(blank=True, null=True, verbose_name=_("Expiration OTP vendeur"))
    seller_otp_attempts = models.PositiveSmallIntegerField(default=0, verbose_name=_("Tentatives OTP vendeur"))
    seller_signed_at = models.DateTimeField(blank=True, null=True, verbose_name=_("Signé par le vendeur le"))

    signed_at = models.DateTimeField(blank=True, null=True, verbose_name=_("Date de signature"))
    completed_at = models.DateTimeField(blank=True, null=True, verbose_name=_("Date de finalisation"))
    cancel_reason = models.TextField(blank=True, null=True, verbose_name=_("Motif d'annulation"))
    notes = models.TextField(blank=True, default='', verbose_name=_("Notes"))

    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("Date de création"))
    updated_at = models.DateTimeField(auto_now=True, verbose_name=_("Date de mise à jour"))

    class Meta:
        ordering = ('-created_at',)
        verbose_name = _("Contrat")
        verbose_name_plural = _("Contrats")
        constraints = [
            models.CheckConstraint(
                condition=~Q(buyer=F('seller')), name='contract_buyer_is_not_seller'),
            models.UniqueConstraint(
                fields=['buyer', 'post'],
                condition=Q(status__in=['pending', 'negotiating', 'awaiting_sign', 'signed', 'notarizing']),
                name='contract_one_active_per_buyer_post'),
        ]
        indexes = [
            models.Index(fields=['status'], name='contracts_status_idx'),
            models.Index(fields=['staff', 'status'], name='contracts_staff_status_idx'),
        ]

    def __str__(self):
        return f"Contrat #{self.id} - annonce #{self.post_id} ({self.get_status_display()})"

    # Cycle de vie

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    def can_apply(self, event):
        allowed_from, _target = self.TRANSITIONS[event]
        return self.status in allowed_from

    def ensure(self, event):
        """Lève Conflict si l'événement n'est pas permis depuis le statut courant"""
        if not self.can_apply(event):
            raise Conflict(
                f"Action impossible: le contrat est au statut « {self.get_status_display()} »",
                contract_status=self.status)

    def apply(self, event):
        """Applique un événement du cycle de vie"""
        self.ensure(event)
        _allowed_from, target = self.TRANSITIONS[event]
        if target is not None:
            self.status = target
        return self.status

    # Parties

    def party_of(self, user):
        """Retourne 'buyer', 'seller' ou None"""
        if user is None:
            return None
        if user.id == self.buyer_id:
            return BUYER
        if user.id == self.seller_id:
            return SELLER
        return None

    def is_assigned_staff(self, user):
        return user is not None and self.staff_id is not None and self.staff_id == user.id

    def signed_at_for(self, party):
        return getattr(self, f'{party}_signed_at')

    @property
    def both_signed(self):
        return bool(self.buyer_signed_at and self.seller_signed_at)

    @property
    def any_signed(self):
        return bool(self.buyer_signed_at or self.seller_signed_at)

    def clear_otps(self):
        for party in PARTIES:
            setattr(self, f'{party}_otp', None)
            setattr(self, f'{party}_otp_expires_at', None)
            setattr(self, f'{party}_otp_attempts', 0)

    # Frais

    def fees(self):
        return {name: getattr(self, name) or Decimal('0') for name in FEE_FIELDS}

    @property
    def total_extra_fees(self):
        return sum(self.fees().values(), Decimal('0'))

    def responsibility_for(self, fee_name):
        mapping = self.fee_responsibility or {}
        return mapping.get(fee_name) or default_fee_responsibility()[fee_name]

    def fee_total_for(self, party):
        """Somme des frais à la charge d'une partie"""
        return sum(
            (amount for name, amount in self.fees().items() if self.responsibility_for(name) == party),
            Decimal('0'),
        )
