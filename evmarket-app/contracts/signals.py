"""
Signaux du module contrats
La mise à jour du statut de vente de l'annonce est déclenchée après le commit
de la signature: un échec ici n'annule jamais la signature
"""
from functools import partial
import logging

from django.db import transaction
from django.dispatch import Signal, receiver

from listings.services import PostService

logger = logging.getLogger(__name__)

# Envoyé dans la transaction de signature quand les deux parties ont signé
contract_signed = Signal()


def mark_post_sold(contract_id, post_id):
    try:
        PostService.mark_sold(post_id)
    except Exception:
        logger.exception(
            f"Statut de vente non synchronisé pour l'annonce #{post_id} (contrat #{contract_id})")


@receiver(contract_signed)
def schedule_post_sold(sender, contract, **kwargs):
    """Programme le passage de l'annonce en vendue après le commit"""
    transaction.on_commit(partial(mark_post_sold, contract.id, contract.post_id))
