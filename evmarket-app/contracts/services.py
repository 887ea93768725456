"""
Services pour le module contrats
Toute la logique du cycle de vie: demande d'achat, négociation, signature OTP
"""
from datetime import timedelta
import logging

from django.conf import settings
from django.contrib.auth.models import User
from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from accounts.models import Profile
from accounts.permissions import get_role, is_admin, is_staff_member
from core.amounts import parse_amount, parse_positive_int
from core.exceptions import Conflict, NotAllowed, NotFound, TooManyAttempts, ValidationFailed
from listings.models import Post
from . import notifications, otp
from .models import Contract, FEE_FIELDS, PARTIES, PurchaseRequest
from .signals import contract_signed

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TTL_DAYS = 3


def request_ttl():
    return timedelta(days=getattr(settings, 'PURCHASE_REQUEST_TTL_DAYS', DEFAULT_REQUEST_TTL_DAYS))


def check_post_purchasable(post, buyer):
    """Règles communes aux demandes d'achat et aux contrats directs"""
    if post.user_id == buyer.id:
        raise ValidationFailed("Vous ne pouvez pas acheter votre propre annonce")
    if post.category == Post.BATTERY:
        raise ValidationFailed("Les annonces de batteries ne passent pas par un contrat")
    if post.is_sold:
        raise Conflict("Cette annonce est déjà vendue")


def has_active_contract(buyer_id, post_id):
    return Contract.objects.filter(
        buyer_id=buyer_id, post_id=post_id, status__in=Contract.ACTIVE_STATUSES
    ).exists()


class ContractService:
    """Service pour gérer le cycle de vie des contrats"""

    @staticmethod
    def _get(contract_id, lock=False):
        queryset = Contract.objects.select_for_update() if lock else Contract.objects.all()
        contract = queryset.filter(pk=contract_id).first()
        if contract is None:
            raise NotFound("Contrat introuvable")
        return contract

    @staticmethod
    def _require_assigned_staff(contract, actor):
        if not contract.is_assigned_staff(actor):
            raise NotAllowed("Seul le staff assigné à ce contrat peut effectuer cette action")

    @staticmethod
    def _require_assigned_staff_or_admin(contract, actor):
        if not is_admin(actor) and not contract.is_assigned_staff(actor):
            raise NotAllowed("Action réservée au staff assigné ou à un administrateur")

    @staticmethod
    @transaction.atomic
    def create_direct(buyer, post_id, notes=''):
        """
        Ouvre un contrat à la demande directe d'un acheteur
        """
        post_id = parse_positive_int(post_id, 'post_id')
        post = Post.objects.filter(pk=post_id).first()
        if post is None:
            raise NotFound("Annonce introuvable")
        check_post_purchasable(post, buyer)
        if has_active_contract(buyer.id, post.id):
            raise Conflict("Un contrat est déjà en cours pour cette annonce")

        try:
            with transaction.atomic():
                contract = Contract.objects.create(
                    buyer=buyer, seller_id=post.user_id, post=post, notes=notes or '')
        except IntegrityError:
            raise Conflict("Un contrat est déjà en cours pour cette annonce")
        logger.info(f"Contrat #{contract.id} créé par l'acheteur {buyer.username} sur l'annonce #{post.id}")
        return contract

    @staticmethod
    @transaction.atomic
    def assign_staff(contract_id, actor, staff_id):
        if not is_admin(actor):
            raise NotAllowed("Seul un administrateur peut assigner un staff")
        contract = ContractService._get(contract_id, lock=True)
        contract.ensure(Contract.ASSIGN_STAFF)

        staff_id = parse_positive_int(staff_id, 'staff_id')
        staff = User.objects.filter(pk=staff_id, is_active=True).first()
        if staff is None:
            raise NotFound("Membre du staff introuvable")
        if not is_staff_member(staff):
            raise ValidationFailed("L'utilisateur choisi n'a pas le rôle staff")
        if contract.staff_id == staff.id:
            raise Conflict("Ce membre du staff est déjà assigné à ce contrat")

        contract.apply(Contract.ASSIGN_STAFF)
        contract.staff = staff
        contract.save(update_fields=['staff', 'status', 'updated_at'])
        logger.info(f"Staff {staff.username} assigné au contrat #{contract.id}")
        return contract

    @staticmethod
    @transaction.atomic
    def record_appointment(contract_id, actor, data):
        contract = ContractService._get(contract_id, lock=True)
        ContractService._require_assigned_staff(contract, actor)
        contract.ensure(Contract.RECORD_APPOINTMENT)

        raw_time = data.get('appointment_time')
        appointment_time = parse_datetime(str(raw_time)) if raw_time else None
        if appointment_time is None:
            raise ValidationFailed("Date de rendez-vous manquante ou invalide (format ISO 8601 attendu)")
        if timezone.is_naive(appointment_time):
            appointment_time = timezone.make_aware(appointment_time)
        place = (data.get('appointment_place') or '').strip()
        if not place:
            raise ValidationFailed("Le lieu du rendez-vous est obligatoire")

        contract.apply(Contract.RECORD_APPOINTMENT)
        contract.appointment_time = appointment_time
        contract.appointment_place = place
        contract.appointment_note = data.get('appointment_note') or ''
        contract.save(update_fields=[
            'appointment_time', 'appointment_place', 'appointment_note', 'status', 'updated_at'])
        logger.info(f"Rendez-vous fixé pour le contrat #{contract.id} le {appointment_time.isoformat()}")
        return contract

    @staticmethod
    def _parse_fee_responsibility(raw, current):
        if raw in (None, ''):
            return current
        if not isinstance(raw, dict):
            raise ValidationFailed("fee_responsibility doit être un objet")
        mapping = dict(current)
        for name, party in raw.items():
            if name not in FEE_FIELDS:
                raise ValidationFailed(f"Type de frais inconnu: {name}")
            if party not in PARTIES:
                raise ValidationFailed(f"Responsabilité invalide pour {name}: {party!r} (buyer ou seller)")
            mapping[name] = party
        return mapping

    @staticmethod
    @transaction.atomic
    def finalize(contract_id, actor, data):
        """
        Fixe le prix et les frais puis ouvre la phase de signature
        Une nouvelle finalisation est possible tant que personne n'a signé;
        les codes déjà émis sont alors invalidés
        """
        contract = ContractService._get(contract_id, lock=True)
        ContractService._require_assigned_staff(contract, actor)
        contract.ensure(Contract.FINALIZE)
        if contract.any_signed:
            raise Conflict("La signature a déjà commencé, les conditions ne peuvent plus changer")

        agreed_price = parse_amount(data.get('agreed_price'), 'agreed_price', allow_zero=False)
        fees = {}
        for name in FEE_FIELDS:
            value = parse_amount(data.get(name), name, required=False)
            if value is not None:
                fees[name] = value
        current = {name: contract.responsibility_for(name) for name in FEE_FIELDS}
        responsibility = ContractService._parse_fee_responsibility(data.get('fee_responsibility'), current)

        contract.apply(Contract.FINALIZE)
        contract.agreed_price = agreed_price
        for name, value in fees.items():
            setattr(contract, name, value)
        contract.fee_responsibility = responsibility
        if 'fees_note' in data:
            contract.fees_note = data.get('fees_note') or ''
        if 'notes' in data:
            contract.notes = data.get('notes') or ''
        contract.clear_otps()
        contract.save()
        logger.info(f"Contrat #{contract.id} finalisé à {agreed_price} (frais {contract.total_extra_fees})")
        return contract

    @staticmethod
    def send_draft(contract_id, actor):
        contract = ContractService._get(contract_id)
        ContractService._require_assigned_staff(contract, actor)
        contract.apply(Contract.SEND_DRAFT)
        notifications.notify_draft(contract)
        logger.info(f"Projet du contrat #{contract.id} envoyé aux parties")
        return contract

    @staticmethod
    def send_otp(contract_id, actor):
        with transaction.atomic():
            contract = ContractService._get(contract_id, lock=True)
            ContractService._require_assigned_staff_or_admin(contract, actor)
            contract.apply(Contract.SEND_OTP)
            codes = otp.issue_otps(contract)
            if not codes:
                raise Conflict("Les deux parties ont déjà signé")
            contract.save()
        notifications.notify_otp(contract, codes)
        logger.info(f"OTP émis pour le contrat #{contract.id} ({', '.join(codes)})")
        return contract

    @staticmethod
    def verify_otp(contract_id, actor, code):
        """
        Vérifie le code d'une partie
        Le compteur d'essais est enregistré avant de répondre, même en cas d'échec
        """
        code = str(code or '').strip()
        if not code:
            raise ValidationFailed("Le code OTP est obligatoire")

        with transaction.atomic():
            contract = ContractService._get(contract_id, lock=True)
            party = contract.party_of(actor)
            if party is None:
                raise NotAllowed("Seuls l'acheteur et le vendeur peuvent signer ce contrat")
            if contract.signed_at_for(party):
                raise Conflict("Vous avez déjà signé ce contrat")
            contract.apply(Contract.SIGN)

            now = timezone.now()
            outcome = otp.check_submission(contract, party, code, now)
            update_fields = otp.party_fields(party) + ['updated_at']
            if outcome == otp.ACCEPTED and contract.both_signed:
                contract.apply(Contract.COMPLETE_SIGNING)
                contract.signed_at = now
                contract.clear_otps()
                update_fields = None
                contract_signed.send(sender=Contract, contract=contract)
            contract.save(update_fields=update_fields)

        if outcome == otp.ACCEPTED:
            logger.info(f"Contrat #{contract.id} signé par {party} (statut {contract.status})")
            return contract
        if outcome == otp.ALREADY_SIGNED:
            raise Conflict("Vous avez déjà signé ce contrat")
        if outcome == otp.TOO_MANY_ATTEMPTS:
            logger.warning(f"Trop d'essais OTP pour {party} sur le contrat #{contract.id}")
            raise TooManyAttempts("Trop de tentatives, demandez un nouveau code")
        if outcome in (otp.NOT_ISSUED, otp.EXPIRED):
            raise ValidationFailed("Code expiré ou non émis, demandez un nouveau code")
        raise ValidationFailed("Code OTP invalide")

    @staticmethod
    def send_final(contract_id, actor):
        with transaction.atomic():
            contract = ContractService._get(contract_id, lock=True)
            ContractService._require_assigned_staff(contract, actor)
            if not contract.both_signed:
                raise Conflict("Les deux parties doivent avoir signé")
            contract.apply(Contract.SEND_FINAL)
            contract.completed_at = timezone.now()
            contract.save(update_fields=['status', 'completed_at', 'updated_at'])
        notifications.notify_final(contract)
        logger.info(f"Contrat #{contract.id} finalisé et envoyé aux parties")
        return contract

    @staticmethod
    @transaction.atomic
    def cancel(contract_id, actor, reason=''):
        contract = ContractService._get(contract_id, lock=True)
        ContractService._require_assigned_staff_or_admin(contract, actor)
        contract.apply(Contract.CANCEL)
        contract.cancel_reason = reason or None
        contract.clear_otps()
        contract.save()
        logger.info(f"Contrat #{contract.id} annulé par {actor.username}")
        return contract

    @staticmethod
    def get_for_viewer(contract_id, actor):
        contract = ContractService._get(contract_id)
        if not (contract.party_of(actor) or contract.is_assigned_staff(actor)
                or is_admin(actor)):
            raise NotAllowed("Vous n'avez pas accès à ce contrat")
        return contract

    @staticmethod
    def list_for(actor, scope, status=None):
        """
        Contrats visibles selon le point de vue: buyer, seller, staff ou admin
        """
        if scope == 'buyer':
            queryset = Contract.objects.filter(buyer=actor)
        elif scope == 'seller':
            queryset = Contract.objects.filter(seller=actor)
        elif scope == 'staff':
            if not is_staff_member(actor):
                raise NotAllowed("Liste réservée au staff")
            queryset = Contract.objects.filter(staff=actor)
        elif scope == 'admin':
            if not is_admin(actor):
                raise NotAllowed("Liste réservée aux administrateurs")
            queryset = Contract.objects.all()
        else:
            raise ValidationFailed(f"Vue inconnue: {scope}")

        if status:
            if status not in dict(Contract.STATUS_CHOICES):
                raise ValidationFailed(f"Statut inconnu: {status}")
            queryset = queryset.filter(status=status)
        return queryset.order_by('-created_at')


class PurchaseRequestService:
    """Service pour gérer les demandes d'achat"""

    @staticmethod
    def _get(request_id, lock=False):
        queryset = PurchaseRequest.objects.select_for_update() if lock else PurchaseRequest.objects.all()
        purchase_request = queryset.filter(pk=request_id).first()
        if purchase_request is None:
            raise NotFound("Demande d'achat introuvable")
        return purchase_request

    @staticmethod
    def _ensure_pending(purchase_request):
        if purchase_request.expire_if_stale():
            raise Conflict("Cette demande d'achat a expiré")
        if purchase_request.status != PurchaseRequest.PENDING:
            raise Conflict(f"Cette demande d'achat est déjà {purchase_request.get_status_display().lower()}")

    @staticmethod
    def _clean_status(status):
        if status and status not in dict(PurchaseRequest.STATUS_CHOICES):
            raise ValidationFailed(f"Statut inconnu: {status}")
        return status

    @staticmethod
    def _can_handle(purchase_request, actor):
        return get_role(actor) in (Profile.ADMIN, Profile.STAFF) or actor.id == purchase_request.seller_id

    @staticmethod
    @transaction.atomic
    def create(buyer, post_id, message=''):
        post_id = parse_positive_int(post_id, 'post_id')
        post = Post.objects.filter(pk=post_id).first()
        if post is None:
            raise NotFound("Annonce introuvable")
        check_post_purchasable(post, buyer)

        now = timezone.now()
        existing = PurchaseRequest.objects.select_for_update().filter(
            buyer=buyer, post=post, status=PurchaseRequest.PENDING).first()
        if existing and not existing.expire_if_stale(now):
            raise Conflict("Vous avez déjà une demande en attente pour cette annonce", request_id=existing.id)

        try:
            with transaction.atomic():
                purchase_request = PurchaseRequest.objects.create(
                    buyer=buyer,
                    seller_id=post.user_id,
                    post=post,
                    message=message or '',
                    expires_at=now + request_ttl(),
                )
        except IntegrityError:
            raise Conflict("Vous avez déjà une demande en attente pour cette annonce")
        logger.info(f"Demande d'achat #{purchase_request.id} créée par {buyer.username} sur l'annonce #{post.id}")
        return purchase_request

    @staticmethod
    def accept(request_id, actor):
        """
        Accepte la demande et ouvre exactement un contrat
        """
        with transaction.atomic():
            purchase_request = PurchaseRequestService._get(request_id, lock=True)
            if not PurchaseRequestService._can_handle(purchase_request, actor):
                raise NotAllowed("Vous ne pouvez pas traiter cette demande")
            expired = purchase_request.expire_if_stale()
            if not expired:
                PurchaseRequestService._ensure_pending(purchase_request)
                post = Post.objects.select_for_update().get(pk=purchase_request.post_id)
                if post.is_sold:
                    raise Conflict("Cette annonce est déjà vendue")
                if has_active_contract(purchase_request.buyer_id, post.id):
                    raise Conflict("Un contrat est déjà en cours pour cet acheteur et cette annonce")

                purchase_request.status = PurchaseRequest.ACCEPTED
                purchase_request.handled_by = actor
                purchase_request.handled_at = timezone.now()
                purchase_request.save(update_fields=['status', 'handled_by', 'handled_at', 'updated_at'])
                try:
                    with transaction.atomic():
                        contract = Contract.objects.create(
                            buyer_id=purchase_request.buyer_id,
                            seller_id=purchase_request.seller_id,
                            post=post,
                            request=purchase_request,
                            notes=purchase_request.message,
                        )
                except IntegrityError:
                    raise Conflict("Un contrat est déjà en cours pour cet acheteur et cette annonce")
        if expired:
            raise Conflict("Cette demande d'achat a expiré")
        logger.info(f"Demande #{purchase_request.id} acceptée par {actor.username}, contrat #{contract.id} créé")
        return purchase_request, contract

    @staticmethod
    def reject(request_id, actor, reason=''):
        with transaction.atomic():
            purchase_request = PurchaseRequestService._get(request_id, lock=True)
            if not PurchaseRequestService._can_handle(purchase_request, actor):
                raise NotAllowed("Vous ne pouvez pas traiter cette demande")
            expired = purchase_request.expire_if_stale()
            if not expired:
                PurchaseRequestService._ensure_pending(purchase_request)
                purchase_request.status = PurchaseRequest.REJECTED
                purchase_request.handled_by = actor
                purchase_request.handled_at = timezone.now()
                purchase_request.reject_reason = reason or None
                purchase_request.save(update_fields=[
                    'status', 'handled_by', 'handled_at', 'reject_reason', 'updated_at'])
        if expired:
            raise Conflict("Cette demande d'achat a expiré")
        logger.info(f"Demande #{purchase_request.id} refusée par {actor.username}")
        return purchase_request

    @staticmethod
    def withdraw(request_id, actor):
        with transaction.atomic():
            purchase_request = PurchaseRequestService._get(request_id, lock=True)
            if purchase_request.buyer_id != actor.id:
                raise NotAllowed("Seul l'acheteur peut retirer sa demande")
            expired = purchase_request.expire_if_stale()
            if not expired:
                PurchaseRequestService._ensure_pending(purchase_request)
                purchase_request.status = PurchaseRequest.WITHDRAWN
                purchase_request.save(update_fields=['status', 'updated_at'])
        if expired:
            raise Conflict("Cette demande d'achat a expiré")
        logger.info(f"Demande #{purchase_request.id} retirée par l'acheteur")
        return purchase_request

    @staticmethod
    def get_for_viewer(request_id, actor):
        purchase_request = PurchaseRequestService._get(request_id)
        allowed = (actor.id in (purchase_request.buyer_id, purchase_request.seller_id)
                   or get_role(actor) in (Profile.ADMIN, Profile.STAFF))
        if not allowed:
            raise NotAllowed("Vous n'avez pas accès à cette demande")
        purchase_request.expire_if_stale()
        return purchase_request

    @staticmethod
    def list_mine(actor, status=None):
        status = PurchaseRequestService._clean_status(status)
        PurchaseRequestService.expire_stale(buyer=actor)
        queryset = PurchaseRequest.objects.filter(buyer=actor)
        if status:
            queryset = queryset.filter(status=status)
        return queryset.order_by('-created_at')

    @staticmethod
    def list_for_post(post_id, actor, status=None):
        status = PurchaseRequestService._clean_status(status)
        post = Post.objects.filter(pk=post_id).first()
        if post is None:
            raise NotFound("Annonce introuvable")
        if post.user_id != actor.id and get_role(actor) not in (Profile.ADMIN, Profile.STAFF):
            raise NotAllowed("Seul le vendeur peut consulter les demandes de cette annonce")
        PurchaseRequestService.expire_stale(post=post)
        queryset = PurchaseRequest.objects.filter(post=post)
        if status:
            queryset = queryset.filter(status=status)
        return queryset.order_by('-created_at')

    @staticmethod
    def expire_stale(now=None, **filters):
        """
        Passe en expirées toutes les demandes en attente dont le délai est dépassé
        Retourne le nombre de demandes mises à jour
        """
        now = now or timezone.now()
        count = PurchaseRequest.objects.filter(
            status=PurchaseRequest.PENDING, expires_at__lte=now, **filters
        ).update(status=PurchaseRequest.EXPIRED, updated_at=now)
        if count:
            logger.info(f"{count} demande(s) d'achat expirée(s)")
        return count
