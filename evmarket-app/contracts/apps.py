from django.apps import AppConfig


class ContractsConfig(AppConfig):
    """Configuration de l'application des contrats de vente"""
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'contracts'
    verbose_name = 'Contrats de vente'

    def ready(self):
        """Import des signaux lors du chargement de l'application"""
        import contracts.signals  # noqa
