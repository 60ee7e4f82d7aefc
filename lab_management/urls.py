from django.urls import path

from lab_management import views

app_name = "lab_management"

urlpatterns = [
    # Cohorts
    path("cohorts/", views.cohorts, name="cohorts"),
    path("cohorts/<int:pk>/", views.cohort_detail, name="cohort_detail"),
    path("cohorts/<int:pk>/completion/", views.cohort_completion_view, name="cohort_completion"),
    path("cohorts/<int:pk>/archive/", views.cohort_archive, name="cohort_archive"),
    # Students
    path("students/", views.students, name="students"),
    path("students/<int:pk>/", views.student_detail, name="student_detail"),
    # Lab days
    path("lab-days/", views.lab_days, name="lab_days"),
    path("lab-days/<int:pk>/", views.lab_day_detail, name="lab_day_detail"),
    # Scenarios
    path("scenarios/", views.scenarios, name="scenarios"),
    path(
        "scenarios/<int:pk>/difficulty-recommendation/",
        views.scenario_difficulty,
        name="scenario_difficulty",
    ),
    path("scenarios/<int:pk>/versions/", views.scenario_versions, name="scenario_versions"),
    path("assessments/", views.assessments, name="assessments"),
]
