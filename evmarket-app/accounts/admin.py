from django.contrib import admin
from .models import Profile


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'display_name', 'mobile_number', 'role', 'date')
    list_filter = ('role',)
    list_display_links = ('id', 'user')
    list_editable = ('role',)
    list_per_page = 20
    search_fields = ('id', 'user__username', 'user__email')
