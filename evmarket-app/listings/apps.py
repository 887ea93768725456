from django.apps import AppConfig


class ListingsConfig(AppConfig):
    """Configuration de l'application des annonces (véhicules et batteries)"""
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'listings'
    verbose_name = 'Annonces'
