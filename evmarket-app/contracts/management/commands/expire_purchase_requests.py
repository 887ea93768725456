from django.core.management.base import BaseCommand

from contracts.services import PurchaseRequestService


class Command(BaseCommand):
    help = "Passe en expirées les demandes d'achat en attente dont le délai est dépassé"

    def handle(self, *args, **options):
        count = PurchaseRequestService.expire_stale()
        self.stdout.write(self.style.SUCCESS(f"{count} demande(s) d'achat expirée(s)"))
