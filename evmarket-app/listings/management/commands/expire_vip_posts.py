from django.core.management.base import BaseCommand

from listings.services import PostService


class Command(BaseCommand):
    help = 'Désactive les annonces dont la période VIP est terminée'

    def handle(self, *args, **options):
        count = PostService.expire_vip_posts()
        self.stdout.write(self.style.SUCCESS(f'{count} annonce(s) VIP expirée(s) désactivée(s)'))
