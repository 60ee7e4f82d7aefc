"""
URL configuration for core app.

Handles the signed-in user, the dashboard, staff roles and endorsements.
"""
from django.urls import path

from core import views

app_name = "core"

urlpatterns = [
    path("me/", views.me, name="me"),
    path("dashboard/", views.dashboard, name="dashboard"),
    # Users and roles
    path("users/", views.users, name="users"),
    path("users/<int:pk>/role/", views.user_role, name="user_role"),
    # Endorsements
    path("endorsements/", views.endorsements, name="endorsements"),
    path("endorsements/<int:pk>/", views.endorsement_detail, name="endorsement_detail"),
]
