from django.conf import settings
from django.db import models


class ReportTemplate(models.Model):
    """A saved custom report: data source, columns, filters and sort."""

    SORT_ASC = "asc"
    SORT_DESC = "desc"
    SORT_CHOICES = [(SORT_ASC, "Ascending"), (SORT_DESC, "Descending")]

    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    data_source = models.CharField(max_length=50)
    columns = models.JSONField(default=list)
    filters = models.JSONField(default=list, blank=True)
    sort_by = models.CharField(max_length=100, blank=True)
    sort_direction = models.CharField(max_length=4, choices=SORT_CHOICES, default=SORT_ASC)
    group_by = models.CharField(max_length=100, blank=True)
    is_shared = models.BooleanField(default=False)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="report_templates"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "report_templates"
        ordering = ["-updated_at"]

    def __str__(self):
        return self.name

    def to_dict(self):
        return {
            "id": self.pk,
            "name": self.name,
            "description": self.description,
            "data_source": self.data_source,
            "columns": self.columns,
            "filters": self.filters,
            "sort_by": self.sort_by or None,
            "sort_direction": self.sort_direction,
            "group_by": self.group_by or None,
            "is_shared": self.is_shared,
            "created_by": self.created_by.email,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
