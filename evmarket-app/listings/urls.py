"""
URLs du module annonces
"""
from django.urls import path
from . import views

app_name = 'listings'

urlpatterns = [
    path('', views.public_posts, name='public-posts'),
]
