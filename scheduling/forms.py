from django import forms

from scheduling.models import InstructorAvailability, Shift


class ShiftForm(forms.ModelForm):
    class Meta:
        model = Shift
        fields = [
            "title",
            "description",
            "date",
            "start_time",
            "end_time",
            "location",
            "department",
            "min_instructors",
            "max_instructors",
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["min_instructors"].required = False

    def clean_min_instructors(self):
        return self.cleaned_data.get("min_instructors") or 1

    def clean(self):
        cleaned = super().clean()
        low = cleaned.get("min_instructors")
        high = cleaned.get("max_instructors")
        if low and high and high < low:
            self.add_error("max_instructors", "Maximum must be at least the minimum.")
        return cleaned


class AvailabilityForm(forms.ModelForm):
    class Meta:
        model = InstructorAvailability
        fields = ["date", "is_all_day", "start_time", "end_time", "notes"]

    def clean(self):
        cleaned = super().clean()
        if cleaned.get("is_all_day"):
            cleaned["start_time"] = None
            cleaned["end_time"] = None
        elif not cleaned.get("start_time") or not cleaned.get("end_time"):
            raise forms.ValidationError("Start and end times are required unless all day.")
        elif cleaned["end_time"] <= cleaned["start_time"]:
            self.add_error("end_time", "End time must be after start time.")
        return cleaned
