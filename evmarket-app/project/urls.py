"""project URL Configuration"""
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),
    path('posts/', include('listings.urls', namespace='listings')),
    path('billing/', include('payments.urls', namespace='payments')),
    path('', include('contracts.urls', namespace='contracts')),
]
