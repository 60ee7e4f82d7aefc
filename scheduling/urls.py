from django.urls import path

from scheduling import views

app_name = "scheduling"

urlpatterns = [
    path("shifts/", views.shifts, name="shifts"),
    path("shifts/<int:pk>/", views.shift_detail, name="shift_detail"),
    path("shifts/<int:pk>/signup/", views.shift_signup, name="shift_signup"),
    path("signups/<int:pk>/", views.signup_detail, name="signup_detail"),
    path("trades/", views.trades, name="trades"),
    path("availability/", views.availability, name="availability"),
    path("availability/<int:pk>/", views.availability_detail, name="availability_detail"),
]
