from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration de l'application des paiements VIP (Stripe)"""
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'payments'
    verbose_name = 'Paiements VIP'
