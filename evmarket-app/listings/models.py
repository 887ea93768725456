"""
Modèles des annonces de véhicules électriques et de batteries
"""
from django.db import models
from django.db.models import Case, F, IntegerField, Q, Value, When
from django.contrib.auth.models import User
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class PostQuerySet(models.QuerySet):

    def public(self):
        return self.filter(is_active=True)

    def vip_live(self, now=None):
        now = now or timezone.now()
        return self.filter(is_vip=True, vip_expires_at__gt=now)

    def vip_expired(self, now=None):
        """Annonces encore marquées VIP alors que leur période est terminée"""
        now = now or timezone.now()
        return self.filter(is_vip=True).filter(
            Q(vip_expires_at__isnull=True) | Q(vip_expires_at__lte=now))

    def vip_ordered(self, now=None):
        """
        Trie les annonces par priorité VIP effective
        Une annonce dont vip_expires_at est passé compte pour une priorité 0,
        même si le drapeau is_vip n'a pas encore été remis à False
        """
        now = now or timezone.now()
        return self.annotate(
            effective_vip_priority=Case(
                When(is_vip=True, vip_expires_at__gt=now, then=F('vip_priority')),
                default=Value(0),
                output_field=IntegerField(),
            )
        ).order_by(
            '-effective_vip_priority',
            F('published_at').desc(nulls_last=True),
            '-created_at',
        )


class Post(models.Model):
    """Annonce de vente d'un véhicule ou d'une batterie"""
    user = models.ForeignKey(
        User, on_delete=models.CASCADE, related_name='posts', verbose_name=_("Propriétaire"))
    title = models.CharField(max_length=150, verbose_name=_("Titre"))
    content = models.TextField(blank=True, default='', verbose_name=_("Description"))
    price = models.DecimalField(max_digits=18, decimal_places=2, default=0, verbose_name=_("Prix"))

    VEHICLE = 'vehicle'
    BATTERY = 'battery'
    CATEGORY_CHOICES = [
        (VEHICLE, _('Véhicule')),
        (BATTERY, _('Batterie')),
    ]
    category = models.CharField(
        max_length=13, choices=CATEGORY_CHOICES, default=VEHICLE, verbose_name=_("Catégorie"))

    # Visibilité et vente
    is_active = models.BooleanField(default=True, verbose_name=_("Active"))

    AVAILABLE = 'available'
    SOLD = 'sold'
    SALE_STATUS_CHOICES = [
        (AVAILABLE, _('Disponible')),
        (SOLD, _('Vendue')),
    ]
    sale_status = models.CharField(
        max_length=13, choices=SALE_STATUS_CHOICES, default=AVAILABLE, verbose_name=_("Statut de vente"))

    VERIFIED = 'verify'
    NOT_VERIFIED = 'nonverify'
    VERIFY_STATUS_CHOICES = [
        (VERIFIED, _('Vérifiée')),
        (NOT_VERIFIED, _('Non vérifiée')),
    ]
    verify_status = models.CharField(
        max_length=13, choices=VERIFY_STATUS_CHOICES, default=NOT_VERIFIED, verbose_name=_("Vérification"))

    # VIP
    DIAMOND = 'diamond'
    GOLD = 'gold'
    SILVER = 'silver'
    VIP_TIER_CHOICES = [
        (DIAMOND, _('Diamant')),
        (GOLD, _('Or')),
        (SILVER, _('Argent')),
    ]
    VIP_TIERS = (DIAMOND, GOLD, SILVER)

    is_vip = models.BooleanField(default=False, verbose_name=_("VIP"))
    vip_tier = models.CharField(
        max_length=13, choices=VIP_TIER_CHOICES, blank=True, null=True, verbose_name=_("Niveau VIP"))
    vip_priority = models.PositiveIntegerField(default=0, verbose_name=_("Priorité VIP"))
    vip_expires_at = models.DateTimeField(blank=True, null=True, verbose_name=_("Fin du VIP"))
    vip_plan = models.ForeignKey(
        'payments.VipPlan', on_delete=models.SET_NULL, blank=True, null=True,
        related_name='posts', verbose_name=_("Formule VIP"))

    published_at = models.DateTimeField(blank=True, null=True, verbose_name=_("Date de publication"))
    paid_at = models.DateTimeField(blank=True, null=True, verbose_name=_("Date de paiement"))
    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("Date de création"))
    updated_at = models.DateTimeField(auto_now=True, verbose_name=_("Date de mise à jour"))

    objects = PostQuerySet.as_manager()

    class Meta:
        ordering = ('-created_at',)
        verbose_name = _("Annonce")
        verbose_name_plural = _("Annonces")
        indexes = [
            models.Index(fields=['is_vip', 'vip_expires_at'], name='listings_post_vip_idx'),
            models.Index(fields=['user', 'sale_status'], name='listings_post_owner_idx'),
        ]

    def __str__(self):
        return f"{self.title} - {self.user.username}"

    @property
    def is_sold(self):
        return self.sale_status == self.SOLD

    def is_vip_live(self, now=None):
        now = now or timezone.now()
        return bool(self.is_vip and self.vip_expires_at and self.vip_expires_at > now)

    def activate_vip(self, plan, tier, expires_at, now=None):
        """Active la mise en avant payée; l'annonce repasse en attente de vérification"""
        now = now or timezone.now()
        self.is_vip = True
        self.is_active = True
        self.vip_tier = tier
        self.vip_priority = plan.priority if plan else 0
        self.vip_plan = plan
        self.vip_expires_at = expires_at
        self.verify_status = self.NOT_VERIFIED
        self.published_at = now
        self.paid_at = now
        self.save(update_fields=[
            'is_vip', 'is_active', 'vip_tier', 'vip_priority', 'vip_plan',
            'vip_expires_at', 'verify_status', 'published_at', 'paid_at', 'updated_at',
        ])

    def deactivate_vip(self):
        self.is_vip = False
        self.is_active = False
        self.save(update_fields=['is_vip', 'is_active', 'updated_at'])
