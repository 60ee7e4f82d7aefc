from django.urls import path

from reports import views

app_name = "reports"

urlpatterns = [
    path("builder/", views.report_builder, name="builder"),
    path("cohort-comparison/", views.cohort_comparison, name="cohort_comparison"),
]
