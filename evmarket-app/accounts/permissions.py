"""
Résolution du rôle d'un utilisateur déjà authentifié
"""
from .models import Profile


def get_role(user):
    """
    Retourne le rôle de l'utilisateur: admin, staff ou customer
    Un superutilisateur est toujours considéré comme admin
    """
    if user is None or not user.is_authenticated:
        return None
    if user.is_superuser:
        return Profile.ADMIN
    try:
        return user.profile.role
    except Profile.DoesNotExist:
        return Profile.CUSTOMER


def is_admin(user):
    return get_role(user) == Profile.ADMIN


def is_staff_member(user):
    return get_role(user) == Profile.STAFF
