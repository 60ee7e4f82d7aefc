from django import forms

from clinical.models import StudentInternship


class InternshipUpdateForm(forms.ModelForm):
    class Meta:
        model = StudentInternship
        fields = [
            "preceptor",
            "agency",
            "status",
            "internship_start_date",
            "expected_end_date",
            "phase_1_eval_scheduled",
            "phase_1_eval_completed",
            "phase_2_eval_scheduled",
            "phase_2_eval_completed",
            "closeout_meeting_date",
            "closeout_completed",
            "notes",
        ]
