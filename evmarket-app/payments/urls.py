"""
URLs des paiements VIP
"""
from django.urls import path
from . import views

app_name = 'payments'

urlpatterns = [
    path('plans/', views.list_vip_plans, name='vip-plans'),
    path('checkout/', views.create_vip_checkout, name='vip-checkout'),
    path('webhook/', views.stripe_webhook, name='stripe-webhook'),

    # Administration des formules
    path('admin/plans/', views.admin_create_plan, name='admin-create-plan'),
    path('admin/plans/<int:plan_id>/', views.admin_update_plan, name='admin-update-plan'),
    path('admin/plans/<int:plan_id>/toggle/', views.admin_toggle_plan, name='admin-toggle-plan'),
]
