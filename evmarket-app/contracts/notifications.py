"""
Emails envoyés aux parties d'un contrat
Envoi sans suivi: un échec est journalisé mais n'interrompt pas l'opération
"""
from django.conf import settings
from django.core.mail import send_mail
from django.template.loader import render_to_string
from django.utils.html import strip_tags
import logging

from .models import BUYER, SELLER

logger = logging.getLogger(__name__)


def send(to, subject, html_body):
    """Envoie un email HTML à une adresse, retourne True si le backend l'a accepté"""
    if not to:
        logger.warning(f"Email « {subject} » non envoyé: adresse manquante")
        return False
    try:
        send_mail(
            subject,
            strip_tags(html_body),
            getattr(settings, 'DEFAULT_FROM_EMAIL', None),
            [to],
            html_message=html_body,
            fail_silently=False,
        )
    except Exception:
        logger.exception(f"Échec d'envoi de l'email « {subject} » à {to}")
        return False
    return True


def _party_user(contract, party):
    return contract.buyer if party == BUYER else contract.seller


def _context(contract, party=None):
    return {
        'contract': contract,
        'party': party,
        'fees': contract.fees(),
        'total_extra_fees': contract.total_extra_fees,
        'party_fee_total': contract.fee_total_for(party) if party else None,
        'responsibility': {name: contract.responsibility_for(name) for name in contract.fees()},
    }


def notify_otp(contract, codes):
    """Chaque partie reçoit uniquement son propre code"""
    for party, code in codes.items():
        user = _party_user(contract, party)
        context = _context(contract, party)
        context.update({'code': code, 'expires_at': getattr(contract, f'{party}_otp_expires_at')})
        html = render_to_string('contracts/emails/otp.html', context)
        send(user.email, f"Code de signature du contrat #{contract.id}", html)


def notify_draft(contract):
    for party in (BUYER, SELLER):
        user = _party_user(contract, party)
        html = render_to_string('contracts/emails/draft.html', _context(contract, party))
        send(user.email, f"Projet de contrat #{contract.id}", html)


def notify_final(contract):
    for party in (BUYER, SELLER):
        user = _party_user(contract, party)
        html = render_to_string('contracts/emails/final.html', _context(contract, party))
        send(user.email, f"Contrat #{contract.id} signé par les deux parties", html)
