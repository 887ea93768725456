from django.db import models
from django.contrib.auth.models import User
from django.utils.translation import gettext_lazy as _


class Profile(models.Model):
    """Profil rattaché à chaque utilisateur, porte le rôle sur la plateforme"""
    user = models.OneToOneField(
        User, on_delete=models.CASCADE, related_name='profile', verbose_name=_("Utilisateur"))
    display_name = models.CharField(max_length=100, blank=True, null=True, verbose_name=_("Nom affiché"))
    mobile_number = models.CharField(max_length=100, blank=True, null=True, verbose_name=_("Téléphone"))

    ADMIN = 'admin'
    STAFF = 'staff'
    CUSTOMER = 'customer'
    ROLE_CHOICES = [
        (ADMIN, _('Administrateur')),
        (STAFF, _('Staff')),
        (CUSTOMER, _('Client')),
    ]
    role = models.CharField(
        max_length=13,
        choices=ROLE_CHOICES,
        default=CUSTOMER,
        verbose_name=_("Rôle"),
    )
    date = models.DateTimeField(auto_now_add=True, verbose_name=_("Date de création"))
    date_update = models.DateTimeField(auto_now=True, verbose_name=_("Date de mise à jour"))

    class Meta:
        verbose_name = _("Profil")
        verbose_name_plural = _("Profils")
        ordering = ('-date',)

    def __str__(self):
        return f"{self.user.username} ({self.role})"
