# Generated manually

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
            name='VipPlan',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100, verbose_name='Nom')),
                ('slug', models.SlugField(help_text='diamond, gold ou silver pour attribuer un niveau VIP', max_length=100, unique=True, verbose_name='Slug')),
                ('description', models.TextField(blank=True, default='', verbose_name='Description')),
                ('type', models.CharField(choices=[('one_time', 'Paiement unique'), ('subscription', 'Abonnement')], default='one_time', max_length=20, verbose_name='Type')),
                ('amount', models.DecimalField(decimal_places=2, max_digits=18, verbose_name='Montant')),
                ('currency', models.CharField(default='vnd', max_length=3, verbose_name='Devise')),
                ('duration_days', models.PositiveIntegerField(blank=True, null=True, verbose_name='Durée (jours)')),
                ('interval', models.CharField(blank=True, choices=[('day', 'Jour'), ('week', 'Semaine'), ('month', 'Mois'), ('year', 'Année')], max_length=10, null=True, verbose_name='Intervalle de facturation')),
                ('interval_count', models.PositiveIntegerField(blank=True, null=True, verbose_name="Nombre d'intervalles")),
                ('priority', models.PositiveIntegerField(default=0, verbose_name='Priorité')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
                ('stripe_product_id', models.CharField(blank=True, max_length=100, null=True, verbose_name='Produit Stripe')),
                ('stripe_price_id', models.CharField(blank=True, max_length=100, null=True, verbose_name='Prix Stripe')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Date de création')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Date de mise à jour')),
            ],
            options={
                'verbose_name': 'Formule VIP',
                'verbose_name_plural': 'Formules VIP',
                'ordering': ('-priority', 'amount'),
            },
        ),
        migrations.CreateModel(
            name='StripeWebhookLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('event_id', models.CharField(blank=True, max_length=255, null=True, verbose_name='ID événement')),
                ('event_type', models.CharField(max_length=100, verbose_name="Type d'événement")),
                ('payload', models.JSONField(default=dict, verbose_name='Payload reçu')),
                ('processed', models.BooleanField(default=False, verbose_name='Traité')),
                ('error_message', models.TextField(blank=True, null=True, verbose_name="Message d'erreur")),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Date de réception')),
            ],
            options={
                'verbose_name': 'Log Webhook Stripe',
                'verbose_name_plural': 'Logs Webhooks Stripe',
                'ordering': ('-created_at',),
                'indexes': [models.Index(fields=['event_type'], name='payments_hook_type_idx')],
            },
        ),
        migrations.CreateModel(
            name='VipPurchase',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('order_code', models.CharField(max_length=40, unique=True, verbose_name='Code de commande')),
                ('amount', models.DecimalField(decimal_places=2, max_digits=18, verbose_name='Montant')),
                ('currency', models.CharField(default='vnd', max_length=3, verbose_name='Devise')),
                ('status', models.CharField(choices=[('PENDING', 'En attente'), ('PAID', 'Payé'), ('CANCELED', 'Annulé'), ('FAILED', 'Échoué')], default='PENDING', max_length=10, verbose_name='Statut')),
                ('provider', models.CharField(default='stripe', max_length=20, verbose_name='Prestataire')),
                ('checkout_session_id', models.CharField(blank=True, max_length=255, null=True, verbose_name='Session Stripe')),
                ('checkout_url', models.URLField(blank=True, max_length=1000, null=True, verbose_name='URL de paiement')),
                ('subscription_id', models.CharField(blank=True, db_index=True, max_length=255, null=True, verbose_name='Abonnement Stripe')),
                ('raw_payload', models.JSONField(blank=True, default=dict, verbose_name='Dernier payload Stripe')),
                ('failure_reason', models.TextField(blank=True, null=True, verbose_name="Motif d'échec")),
                ('paid_at', models.DateTimeField(blank=True, null=True, verbose_name='Date de paiement')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Date de création')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Date de mise à jour')),
                ('post', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='vip_purchases', to='listings.post', verbose_name='Annonce')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='vip_purchases', to=settings.AUTH_USER_MODEL, verbose_name='Utilisateur')),
                ('vip_plan', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='purchases', to='payments.vipplan', verbose_name='Formule VIP')),
            ],
            options={
                'verbose_name': 'Achat VIP',
                'verbose_name_plural': 'Achats VIP',
                'ordering': ('-created_at',),
                'indexes': [
                    models.Index(fields=['user', 'post', 'status'], name='payments_vip_owner_idx'),
                    models.Index(fields=['status'], name='payments_vip_status_idx'),
                ],
            },
        ),
    ]
