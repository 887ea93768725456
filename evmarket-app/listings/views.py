"""
Vues publiques du module annonces
"""
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_http_methods

from core.exceptions import ValidationFailed
from core.http import api_view
from .models import Post
from .services import PostService

MAX_PAGE_SIZE = 100


@require_http_methods(["GET"])
@api_view
def public_posts(request):
    """
    Liste des annonces actives, les VIP en cours de validité en premier
    """
    try:
        limit = int(request.GET.get('limit', 20))
        offset = int(request.GET.get('offset', 0))
    except ValueError:
        raise ValidationFailed("Paramètres de pagination invalides")
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    offset = max(0, offset)

    now = timezone.now()
    posts = Post.objects.public().vip_ordered(now).select_related('user')[offset:offset + limit]
    return JsonResponse({
        'success': True,
        'results': [PostService.serialize(post, now) for post in posts],
    })
