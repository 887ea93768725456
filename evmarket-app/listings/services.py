"""
Services du module annonces
"""
from django.utils import timezone
import logging

from .models import Post

logger = logging.getLogger(__name__)


class PostService:
    """Mises à jour d'annonces déclenchées par les autres modules"""

    @staticmethod
    def mark_sold(post_id):
        updated = Post.objects.filter(pk=post_id).exclude(sale_status=Post.SOLD).update(
            sale_status=Post.SOLD, updated_at=timezone.now())
        if updated:
            logger.info(f"Annonce #{post_id} marquée comme vendue")
        return bool(updated)

    @staticmethod
    def expire_vip_posts(now=None):
        """
        Retire le statut VIP des annonces dont la période est terminée
        Retourne le nombre d'annonces mises à jour
        """
        now = now or timezone.now()
        count = Post.objects.vip_expired(now).update(
            is_vip=False,
            is_active=False,
            verify_status=Post.NOT_VERIFIED,
            updated_at=now,
        )
        if count:
            logger.info(f"{count} annonce(s) VIP expirée(s) désactivée(s)")
        return count

    @staticmethod
    def serialize(post, now=None):
        return {
            'id': post.id,
            'title': post.title,
            'price': str(post.price),
            'category': post.category,
            'owner_id': post.user_id,
            'sale_status': post.sale_status,
            'verify_status': post.verify_status,
            'is_vip': post.is_vip_live(now),
            'vip_tier': post.vip_tier,
            'vip_priority': post.vip_priority,
            'vip_expires_at': post.vip_expires_at.isoformat() if post.vip_expires_at else None,
            'published_at': post.published_at.isoformat() if post.published_at else None,
        }
