"""
Interface d'administration des paiements VIP
"""
from django.contrib import admin
from .models import StripeWebhookLog, VipPlan, VipPurchase


@admin.register(VipPlan)
class VipPlanAdmin(admin.ModelAdmin):
    """Administration des formules VIP"""
    list_display = ('id', 'name', 'slug', 'type', 'amount', 'currency', 'duration_days',
                    'interval', 'interval_count', 'priority', 'is_active')
    list_filter = ('type', 'is_active')
    list_editable = ('is_active', 'priority')
    search_fields = ('name', 'slug')
    prepopulated_fields = {'slug': ('name',)}
    readonly_fields = ('stripe_product_id', 'stripe_price_id', 'created_at', 'updated_at')

    fieldsets = (
        ('Formule', {
            'fields': ('name', 'slug', 'description', 'type', 'priority', 'is_active')
        }),
        ('Tarif', {
            'fields': ('amount', 'currency', 'duration_days', 'interval', 'interval_count')
        }),
        ('Stripe', {
            'fields': ('stripe_product_id', 'stripe_price_id'),
            'classes': ('collapse',)
        }),
        ('Dates', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )


@admin.register(VipPurchase)
class VipPurchaseAdmin(admin.ModelAdmin):
    """Administration du registre des achats VIP"""
    list_display = ('order_code', 'user', 'post', 'vip_plan', 'amount', 'currency', 'status', 'paid_at', 'created_at')
    list_filter = ('status', 'provider', 'created_at')
    search_fields = ('order_code', 'user__username', 'post__title', 'subscription_id', 'checkout_session_id')
    readonly_fields = ('order_code', 'checkout_session_id', 'checkout_url', 'subscription_id',
                       'raw_payload', 'paid_at', 'created_at', 'updated_at')
    date_hierarchy = 'created_at'


@admin.register(StripeWebhookLog)
class StripeWebhookLogAdmin(admin.ModelAdmin):
    """Journal des webhooks Stripe"""
    list_display = ('event_type', 'event_id', 'processed', 'created_at')
    list_filter = ('event_type', 'processed', 'created_at')
    search_fields = ('event_id',)
    readonly_fields = ('event_id', 'event_type', 'payload', 'processed', 'error_message', 'created_at')

    def has_add_permission(self, request):
        return False
