from django import forms
from django.utils import timezone

from notifications.models import Announcement


class AnnouncementForm(forms.ModelForm):
    class Meta:
        model = Announcement
        fields = [
            "title",
            "body",
            "priority",
            "target_audience",
            "starts_at",
            "ends_at",
            "is_active",
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        for name in ("priority", "target_audience", "starts_at"):
            self.fields[name].required = False

    def clean_priority(self):
        return self.cleaned_data.get("priority") or Announcement.PRIORITY_INFO

    def clean_target_audience(self):
        return self.cleaned_data.get("target_audience") or Announcement.AUDIENCE_ALL

    def clean_starts_at(self):
        return self.cleaned_data.get("starts_at") or timezone.now()

    def clean(self):
        cleaned = super().clean()
        starts_at = cleaned.get("starts_at")
        ends_at = cleaned.get("ends_at")
        if starts_at and ends_at and ends_at < starts_at:
            self.add_error("ends_at", "End must be after start.")
        return cleaned
