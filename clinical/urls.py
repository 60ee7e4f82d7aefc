from django.urls import path

from clinical import views

app_name = "clinical"

urlpatterns = [
    path("internships/", views.internships, name="internships"),
    path("internships/<int:pk>/", views.internship_detail, name="internship_detail"),
    path("preceptors/", views.preceptors, name="preceptors"),
]
