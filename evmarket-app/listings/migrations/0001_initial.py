# Generated manually

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Post',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=150, verbose_name='Titre')),
                ('content', models.TextField(blank=True, default='', verbose_name='Description')),
                ('price', models.DecimalField(decimal_places=2, default=0, max_digits=18, verbose_name='Prix')),
                ('category', models.CharField(choices=[('vehicle', 'Véhicule'), ('battery', 'Batterie')], default='vehicle', max_length=13, verbose_name='Catégorie')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
                ('sale_status', models.CharField(choices=[('available', 'Disponible'), ('sold', 'Vendue')], default='available', max_length=13, verbose_name='Statut de vente')),
                ('verify_status', models.CharField(choices=[('verify', 'Vérifiée'), ('nonverify', 'Non vérifiée')], default='nonverify', max_length=13, verbose_name='Vérification')),
                ('is_vip', models.BooleanField(default=False, verbose_name='VIP')),
                ('vip_tier', models.CharField(blank=True, choices=[('diamond', 'Diamant'), ('gold', 'Or'), ('silver', 'Argent')], max_length=13, null=True, verbose_name='Niveau VIP')),
                ('vip_priority', models.PositiveIntegerField(default=0, verbose_name='Priorité VIP')),
                ('vip_expires_at', models.DateTimeField(blank=True, null=True, verbose_name='Fin du VIP')),
                ('published_at', models.DateTimeField(blank=True, null=True, verbose_name='Date de publication')),
                ('paid_at', models.DateTimeField(blank=True, null=True, verbose_name='Date de paiement')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Date de création')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Date de mise à jour')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='posts', to=settings.AUTH_USER_MODEL, verbose_name='Propriétaire')),
            ],
            options={
                'verbose_name': 'Annonce',
                'verbose_name_plural': 'Annonces',
                'ordering': ('-created_at',),
                'indexes': [
                    models.Index(fields=['is_vip', 'vip_expires_at'], name='listings_post_vip_idx'),
                    models.Index(fields=['user', 'sale_status'], name='listings_post_owner_idx'),
                ],
            },
        ),
    ]
