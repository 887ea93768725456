"""
Erreurs métier partagées par les applications de la marketplace
Chaque erreur porte le code HTTP qui lui correspond côté API
"""


class MarketplaceError(Exception):
    """Erreur métier de base, toujours accompagnée d'un message lisible"""
    status_code = 400
    code = 'error'

    def __init__(self, message, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def as_dict(self):
        payload = {'success': False, 'error': self.message, 'code': self.code}
        payload.update(self.extra)
        return payload


class ValidationFailed(MarketplaceError, ValueError):
    """Champ manquant, valeur d'énumération inconnue ou montant invalide"""
    status_code = 400
    code = 'validation_error'


class NotAllowed(MarketplaceError, PermissionError):
    """Mauvais rôle, pas partie au contrat ou pas le staff assigné"""
    status_code = 403
    code = 'forbidden'


class NotFound(MarketplaceError, LookupError):
    status_code = 404
    code = 'not_found'


class Conflict(MarketplaceError):
    """État incompatible: doublon, déjà signé, paiement déjà en attente..."""
    status_code = 409
    code = 'conflict'


class TooManyAttempts(MarketplaceError):
    status_code = 429
    code = 'too_many_attempts'


class GatewayRejected(MarketplaceError):
    """Le prestataire de paiement a refusé les paramètres envoyés"""
    status_code = 400
    code = 'gateway_rejected'
