"""
Outils communs aux vues JSON
"""
import json
import logging
from functools import wraps

from django.http import JsonResponse

from .exceptions import MarketplaceError, ValidationFailed

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Une erreur est survenue. Veuillez réessayer plus tard."


def error_response(exc: MarketplaceError):
    return JsonResponse(exc.as_dict(), status=exc.status_code)


def json_body(request):
    """Décode le corps JSON de la requête (formulaire accepté en repli)"""
    if request.content_type == 'application/json':
        if not request.body:
            return {}
        try:
            data = json.loads(request.body)
        except (ValueError, UnicodeDecodeError):
            raise ValidationFailed("Corps JSON invalide")
        if not isinstance(data, dict):
            raise ValidationFailed("Le corps JSON doit être un objet")
        return data
    return request.POST.dict()


def api_view(view_func):
    """
    Transforme les erreurs métier en réponses JSON
    Les erreurs inattendues sont journalisées et masquées au client
    """
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        try:
            return view_func(request, *args, **kwargs)
        except MarketplaceError as e:
            return error_response(e)
        except Exception:
            logger.exception(f"Erreur interne sur {request.method} {request.path}")
            return JsonResponse({'success': False, 'error': GENERIC_ERROR_MESSAGE}, status=500)
    return wrapper
