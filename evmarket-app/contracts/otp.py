"""
Codes OTP de signature des contrats

Un code à 6 chiffres par partie, valable 10 minutes, 5 essais au maximum par
émission. Le code est effacé dès qu'il a servi.
"""
from datetime import timedelta
import hmac
import secrets
import string

from django.conf import settings
from django.utils import timezone

from .models import PARTIES

OTP_LENGTH = 6

# Résultats d'une soumission
ACCEPTED = 'accepted'
ALREADY_SIGNED = 'already_signed'
NOT_ISSUED = 'not_issued'
EXPIRED = 'expired'
TOO_MANY_ATTEMPTS = 'too_many_attempts'
INVALID = 'invalid'


def otp_ttl():
    return timedelta(minutes=getattr(settings, 'CONTRACT_OTP_TTL_MINUTES', 10))


def max_attempts():
    return getattr(settings, 'CONTRACT_OTP_MAX_ATTEMPTS', 5)


def generate_otp(length=OTP_LENGTH):
    """Génère un code numérique aléatoire"""
    return ''.join(secrets.choice(string.digits) for _ in range(length))


def issue_otps(contract, now=None):
    """
    Émet un nouveau code pour chaque partie qui n'a pas encore signé
    Les compteurs d'essais repartent à zéro

    Returns:
        dict partie -> code, à transmettre par email puis oublier
    """
    now = now or timezone.now()
    expires_at = now + otp_ttl()
    codes = {}
    for party in PARTIES:
        if contract.signed_at_for(party):
            continue
        code = generate_otp()
        while code in codes.values():
            code = generate_otp()
        codes[party] = code
        setattr(contract, f'{party}_otp', code)
        setattr(contract, f'{party}_otp_expires_at', expires_at)
        setattr(contract, f'{party}_otp_attempts', 0)
    return codes


def codes_match(expected, submitted):
    return hmac.compare_digest(str(expected).encode(), str(submitted).encode())


def check_submission(contract, party, code, now=None):
    """
    Évalue un code soumis par une partie et met à jour le contrat en mémoire

    Chaque soumission sur un code valide incrémente le compteur, y compris
    les échecs. Au-delà du maximum, le code est refusé même s'il est juste,
    jusqu'à une nouvelle émission.
    """
    now = now or timezone.now()
    if contract.signed_at_for(party):
        return ALREADY_SIGNED

    expected = getattr(contract, f'{party}_otp')
    expires_at = getattr(contract, f'{party}_otp_expires_at')
    if not expected or not expires_at:
        return NOT_ISSUED
    if expires_at <= now:
        return EXPIRED

    attempts = getattr(contract, f'{party}_otp_attempts') + 1
    setattr(contract, f'{party}_otp_attempts', attempts)
    if attempts > max_attempts():
        return TOO_MANY_ATTEMPTS
    if not codes_match(expected, code):
        return INVALID

    setattr(contract, f'{party}_signed_at', now)
    setattr(contract, f'{party}_otp', None)
    setattr(contract, f'{party}_otp_expires_at', None)
    return ACCEPTED


def party_fields(party):
    """Champs à sauvegarder après une soumission"""
    return [f'{party}_otp', f'{party}_otp_expires_at', f'{party}_otp_attempts', f'{party}_signed_at']
