"""
Root URL configuration.

HTML pages: sign-in and the allauth flows. Everything else is the JSON API
under /api/.
"""
from django.contrib import admin
from django.urls import include, path
from django.views.generic import RedirectView

from accounts.views import permission_denied_view

urlpatterns = [
    path("", RedirectView.as_view(pattern_name="accounts:post_login_router"), name="home"),
    path("admin/", admin.site.urls),
    path("accounts/", include("accounts.urls")),
    path("auth/", include("allauth.urls")),
    path("api/", include("core.urls")),
    path("api/lab-management/", include("lab_management.urls")),
    path("api/scheduling/", include("scheduling.urls")),
    path("api/clinical/", include("clinical.urls")),
    path("api/", include("notifications.urls")),
    path("api/reports/", include("reports.urls")),
    path("api/", include("system.urls")),
]

handler403 = permission_denied_view
