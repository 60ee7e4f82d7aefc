from django import forms

from reports.builder import DATA_SOURCES, valid_columns
from reports.models import ReportTemplate


class ReportTemplateForm(forms.ModelForm):
    class Meta:
        model = ReportTemplate
        fields = [
            "name",
            "description",
            "data_source",
            "columns",
            "filters",
            "sort_by",
            "sort_direction",
            "group_by",
            "is_shared",
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["sort_direction"].required = False

    def clean_data_source(self):
        data_source = self.cleaned_data["data_source"]
        if data_source not in DATA_SOURCES:
            raise forms.ValidationError("Invalid data_source")
        return data_source

    def clean_filters(self):
        filters = self.cleaned_data.get("filters") or []
        if not isinstance(filters, list):
            raise forms.ValidationError("filters must be a list")
        return filters

    def clean_sort_direction(self):
        return self.cleaned_data.get("sort_direction") or ReportTemplate.SORT_ASC

    def clean(self):
        cleaned = super().clean()
        data_source = cleaned.get("data_source")
        columns = cleaned.get("columns")
        if data_source and columns:
            if not isinstance(columns, list):
                self.add_error("columns", "columns must be a list")
            else:
                selected = [c for c in columns if isinstance(c, str)]
                known = [c["key"] for c in DATA_SOURCES[data_source]["columns"]]
                if not any(c in known for c in selected):
                    self.add_error("columns", "No valid columns selected")
                else:
                    cleaned["columns"] = valid_columns(DATA_SOURCES[data_source], selected)
        return cleaned
