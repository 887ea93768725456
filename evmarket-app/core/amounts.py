"""
Conversion sécurisée des montants saisis par les utilisateurs
"""
from decimal import Context, Decimal, InvalidOperation

from .exceptions import ValidationFailed

THOUSAND_SEPARATORS = (',', ' ', '\u00a0', '_')


def parse_amount(value, field, required=True, allow_zero=True, max_digits=18, decimal_places=2):
    """
    Convertit un montant (int, float, str ou Decimal) en Decimal quantifié.
    Les séparateurs de milliers sont tolérés: "500,000" donne Decimal('500000.00').
    Lève ValidationFailed si la valeur est absente, négative ou invalide.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationFailed(f"Le champ {field} est obligatoire")
        return None
    if isinstance(value, bool):
        raise ValidationFailed(f"Le champ {field} doit être un nombre")

    try:
        if isinstance(value, Decimal):
            decimal_value = value
        else:
            raw = str(value).strip()
            for separator in THOUSAND_SEPARATORS:
                raw = raw.replace(separator, '')
            decimal_value = Decimal(raw)
    except (ValueError, TypeError, InvalidOperation):
        raise ValidationFailed(f"Le champ {field} doit être un nombre (reçu: {value!r})")

    if decimal_value.is_nan() or decimal_value.is_infinite():
        raise ValidationFailed(f"Le champ {field} doit être un nombre fini")
    if decimal_value < 0:
        raise ValidationFailed(f"Le champ {field} ne peut pas être négatif")
    if not allow_zero and decimal_value == 0:
        raise ValidationFailed(f"Le champ {field} doit être supérieur à zéro")

    quantize_value = Decimal('1') / (Decimal('10') ** decimal_places)
    try:
        decimal_value = decimal_value.quantize(quantize_value, context=Context(prec=max_digits + 2))
    except InvalidOperation:
        raise ValidationFailed(f"Le champ {field} est trop grand")
    if len(decimal_value.as_tuple().digits) > max_digits:
        raise ValidationFailed(f"Le champ {field} est trop grand")
    return decimal_value


def parse_positive_int(value, field, required=True):
    if value is None or value == '':
        if required:
            raise ValidationFailed(f"Le champ {field} est obligatoire")
        return None
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationFailed(f"Le champ {field} doit être un entier")
    if number <= 0:
        raise ValidationFailed(f"Le champ {field} doit être supérieur à zéro")
    return number
