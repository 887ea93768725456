"""
Signaux du module comptes
"""
from django.contrib.auth.models import User
from django.db.models.signals import post_save
from django.dispatch import receiver
import logging

from .models import Profile

logger = logging.getLogger(__name__)


@receiver(post_save, sender=User)
def create_profile_for_new_user(sender, instance, created, **kwargs):
    """Chaque nouvel utilisateur reçoit un profil client par défaut"""
    if created:
        Profile.objects.get_or_create(user=instance)
        logger.info(f"Profil créé pour l'utilisateur {instance.username}")
