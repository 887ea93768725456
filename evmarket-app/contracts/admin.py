"""
Interface d'administration pour le module contrats
"""
from django.contrib import admin
from .models import Contract, PurchaseRequest


@admin.register(PurchaseRequest)
class PurchaseRequestAdmin(admin.ModelAdmin):
    """Administration des demandes d'achat"""
    list_display = ('id', 'post', 'buyer', 'seller', 'status', 'handled_by', 'expires_at', 'created_at')
    list_filter = ('status', 'created_at')
    search_fields = ('post__title', 'buyer__username', 'seller__username')
    readonly_fields = ('created_at', 'updated_at', 'handled_at')
    date_hierarchy = 'created_at'


@admin.register(Contract)
class ContractAdmin(admin.ModelAdmin):
    """Administration des contrats; les codes OTP ne sont jamais affichés"""
    list_display = ('id', 'post', 'buyer', 'seller', 'staff', 'agreed_price', 'status',
                    'buyer_signed_at', 'seller_signed_at', 'created_at')
    list_filter = ('status', 'created_at')
    search_fields = ('post__title', 'buyer__username', 'seller__username', 'staff__username')
    readonly_fields = ('request', 'buyer_signed_at', 'seller_signed_at', 'buyer_otp_attempts',
                       'seller_otp_attempts', 'signed_at', 'completed_at', 'created_at', 'updated_at')
    exclude = ('buyer_otp', 'seller_otp', 'buyer_otp_expires_at', 'seller_otp_expires_at')
    date_hierarchy = 'created_at'

    fieldsets = (
        ('Parties', {
            'fields': ('post', 'request', 'buyer', 'seller', 'staff', 'status')
        }),
        ('Conditions', {
            'fields': ('agreed_price', 'brokerage_fee', 'title_transfer_fee', 'legal_and_condition_check_fee',
                       'admin_processing_fee', 'reinspection_or_registration_support_fee',
                       'fee_responsibility', 'fees_note')
        }),
        ('Rendez-vous', {
            'fields': ('appointment_time', 'appointment_place', 'appointment_note')
        }),
        ('Signature', {
            'fields': ('buyer_signed_at', 'seller_signed_at', 'buyer_otp_attempts', 'seller_otp_attempts',
                       'signed_at', 'completed_at')
        }),
        ('Divers', {
            'fields': ('cancel_reason', 'notes', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )
