from django.urls import path

from system import views

app_name = "system"

urlpatterns = [
    path("admin/config/", views.admin_config, name="admin_config"),
    path("admin/system-alerts/", views.system_alerts, name="system_alerts"),
    path("cron/<slug:job_name>/", views.cron, name="cron"),
]
