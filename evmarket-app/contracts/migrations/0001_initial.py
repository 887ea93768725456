# Generated manually

import contracts.models
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('listings', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='PurchaseRequest',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('message', models.TextField(blank=True, default='', verbose_name='Message')),
                ('status', models.CharField(choices=[('pending', 'En attente'), ('accepted', 'Acceptée'), ('rejected', 'Refusée'), ('withdrawn', 'Retirée'), ('expired', 'Expirée')], default='pending', max_length=13, verbose_name='Statut')),
                ('handled_at', models.DateTimeField(blank=True, null=True, verbose_name='Date de traitement')),
                ('reject_reason', models.TextField(blank=True, null=True, verbose_name='Motif du refus')),
                ('expires_at', models.DateTimeField(verbose_name="Date d'expiration")),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Date de création')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Date de mise à jour')),
                ('buyer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='purchase_requests_sent', to=settings.AUTH_USER_MODEL, verbose_name='Acheteur')),
                ('handled_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='purchase_requests_handled', to=settings.AUTH_USER_MODEL, verbose_name='Traitée par')),
                ('post', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='purchase_requests', to='listings.post', verbose_name='Annonce')),
                ('seller', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='purchase_requests_received', to=settings.AUTH_USER_MODEL, verbose_name='Vendeur')),
            ],
            options={
                'verbose_name': "Demande d'achat",
                'verbose_name_plural': "Demandes d'achat",
                'ordering': ('-created_at',),
                'indexes': [models.Index(fields=['status', 'expires_at'], name='contracts_req_expiry_idx')],
                'constraints': [models.UniqueConstraint(condition=models.Q(('status', 'pending')), fields=('buyer', 'post'), name='purchase_request_one_pending')],
            },
        ),
        migrations.CreateModel(
            name='Contract',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('status', models.CharField(choices=[('pending', 'En attente'), ('negotiating', 'En négociation'), ('awaiting_sign', 'En attente de signature'), ('signed', 'Signé'), ('notarizing', 'Chez le notaire'), ('completed', 'Terminé'), ('cancelled', 'Annulé')], default='pending', max_length=20, verbose_name='Statut')),
                ('agreed_price', models.DecimalField(blank=True, decimal_places=2, max_digits=18, null=True, verbose_name='Prix convenu')),
                ('brokerage_fee', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=18, verbose_name='Frais de courtage')),
                ('title_transfer_fee', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=18, verbose_name='Frais de transfert de titre')),
                ('legal_and_condition_check_fee', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=18, verbose_name='Frais de contrôle juridique et technique')),
                ('admin_processing_fee', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=18, verbose_name='Frais de dossier')),
                ('reinspection_or_registration_support_fee', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=18, verbose_name="Frais de contre-visite ou d'immatriculation")),
                ('fee_responsibility', models.JSONField(default=contracts.models.default_fee_responsibility, verbose_name='Répartition des frais')),
                ('fees_note', models.TextField(blank=True, default='', verbose_name='Note sur les frais')),
                ('appointment_time', models.DateTimeField(blank=True, null=True, verbose_name='Date du rendez-vous')),
                ('appointment_place', models.CharField(blank=True, default='', max_length=255, verbose_name='Lieu du rendez-vous')),
                ('appointment_note', models.TextField(blank=True, default='', verbose_name='Note du rendez-vous')),
                ('buyer_otp', models.CharField(blank=True, max_length=6, null=True, verbose_name='OTP acheteur')),
                ('buyer_otp_expires_at', models.DateTimeField(blank=True, null=True, verbose_name='Expiration OTP acheteur')),
                ('buyer_otp_attempts', models.PositiveSmallIntegerField(default=0, verbose_name='Tentatives OTP acheteur')),
                ('buyer_signed_at', models.DateTimeField(blank=True, null=True, verbose_name="Signé par l'acheteur le")),
                ('seller_otp', models.CharField(blank=True, max_length=6, null=True, verbose_name='OTP vendeur')),
                ('seller_otp_expires_at', models.DateTimeField(blank=True, null=True, verbose_name='Expiration OTP vendeur')),
                ('seller_otp_attempts', models.PositiveSmallIntegerField(default=0, verbose_name='Tentatives OTP vendeur')),
                ('seller_signed_at', models.DateTimeField(blank=True, null=True, verbose_name='Signé par le vendeur le')),
                ('signed_at', models.DateTimeField(blank=True, null=True, verbose_name='Date de signature')),
                ('completed_at', models.DateTimeField(blank=True, null=True, verbose_name='Date de finalisation')),
                ('cancel_reason', models.TextField(blank=True, null=True, verbose_name="Motif d'annulation")),
                ('notes', models.TextField(blank=True, default='', verbose_name='Notes')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Date de création')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Date de mise à jour')),
                ('buyer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='contracts_as_buyer', to=settings.AUTH_USER_MODEL, verbose_name='Acheteur')),
                ('post', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='contracts', to='listings.post', verbose_name='Annonce')),
                ('request', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='contract', to='contracts.purchaserequest', verbose_name="Demande d'achat")),
                ('seller', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='contracts_as_seller', to=settings.AUTH_USER_MODEL, verbose_name='Vendeur')),
                ('staff', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='contracts_as_staff', to=settings.AUTH_USER_MODEL, verbose_name='Staff assigné')),
            ],
            options={
                'verbose_name': 'Contrat',
                'verbose_name_plural': 'Contrats',
                'ordering': ('-created_at',),
                'indexes': [
                    models.Index(fields=['status'], name='contracts_status_idx'),
                    models.Index(fields=['staff', 'status'], name='contracts_staff_status_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('buyer', models.F('seller')), _negated=True), name='contract_buyer_is_not_seller'),
                    models.UniqueConstraint(condition=models.Q(('status__in', ['pending', 'negotiating', 'awaiting_sign', 'signed', 'notarizing'])), fields=('buyer', 'post'), name='contract_one_active_per_buyer_post'),
                ],
            },
        ),
    ]
