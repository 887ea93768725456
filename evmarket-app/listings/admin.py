"""
Interface d'administration des annonces
"""
from django.contrib import admin
from .models import Post


@admin.register(Post)
class PostAdmin(admin.ModelAdmin):
    """Administration des annonces"""
    list_display = ('id', 'title', 'user', 'category', 'price', 'sale_status',
                    'verify_status', 'is_active', 'is_vip', 'vip_tier', 'vip_expires_at')
    list_filter = ('category', 'sale_status', 'verify_status', 'is_active', 'is_vip', 'vip_tier')
    search_fields = ('title', 'user__username')
    readonly_fields = ('created_at', 'updated_at', 'paid_at', 'published_at')
    list_per_page = 20

    fieldsets = (
        ('Annonce', {
            'fields': ('user', 'title', 'content', 'price', 'category')
        }),
        ('Statut', {
            'fields': ('is_active', 'sale_status', 'verify_status')
        }),
        ('VIP', {
            'fields': ('is_vip', 'vip_tier', 'vip_priority', 'vip_expires_at', 'vip_plan')
        }),
        ('Dates', {
            'fields': ('published_at', 'paid_at', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )
