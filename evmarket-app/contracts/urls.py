"""
URLs du module contrats
"""
from django.urls import path
from . import views

app_name = 'contracts'

urlpatterns = [
    # Contrats
    path('contracts/', views.create_contract, name='create-contract'),
    path('contracts/list/<str:scope>/', views.list_contracts, name='list-contracts'),
    path('contracts/<int:contract_id>/', views.contract_detail, name='contract-detail'),
    path('contracts/<int:contract_id>/assign-staff/', views.assign_staff, name='assign-staff'),
    path('contracts/<int:contract_id>/appointment/', views.record_appointment, name='record-appointment'),
    path('contracts/<int:contract_id>/finalize/', views.finalize_contract, name='finalize'),
    path('contracts/<int:contract_id>/send-draft/', views.send_draft, name='send-draft'),
    path('contracts/<int:contract_id>/send-otp/', views.send_otp, name='send-otp'),
    path('contracts/<int:contract_id>/verify-otp/', views.verify_otp, name='verify-otp'),
    path('contracts/<int:contract_id>/send-final/', views.send_final, name='send-final'),
    path('contracts/<int:contract_id>/cancel/', views.cancel_contract, name='cancel'),

    # Demandes d'achat
    path('purchase-requests/', views.create_purchase_request, name='create-request'),
    path('purchase-requests/mine/', views.my_purchase_requests, name='my-requests'),
    path('purchase-requests/post/<int:post_id>/', views.post_purchase_requests, name='post-requests'),
    path('purchase-requests/<int:request_id>/', views.purchase_request_detail, name='request-detail'),
    path('purchase-requests/<int:request_id>/accept/', views.accept_purchase_request, name='accept-request'),
    path('purchase-requests/<int:request_id>/reject/', views.reject_purchase_request, name='reject-request'),
    path('purchase-requests/<int:request_id>/withdraw/', views.withdraw_purchase_request, name='withdraw-request'),
]
