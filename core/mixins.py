"""
Audit stamping for AuditModel subclasses.

``stamp_audit`` is used by the API views; ``CreatedUpdatedAuditMixin`` does
the same for records edited through the Django admin.
"""
from typing import Any

from django.db import transaction
from django.forms import BaseInlineFormSet, ModelForm
from django.http import HttpRequest


def stamp_audit(obj: Any, user: Any, *, created: bool = False) -> Any:
    """Set created_by (new records only) and last_updated_by. Does not save."""
    if created and getattr(obj, "created_by_id", None) is None:
        obj.created_by = user
    if hasattr(obj, "last_updated_by_id"):
        obj.last_updated_by = user
    return obj


class CreatedUpdatedAuditMixin:
    """
    Mixin for Django ModelAdmin to automatically set audit fields.

    Usage:
        class CohortAdmin(CreatedUpdatedAuditMixin, admin.ModelAdmin):
            pass
    """

    def save_model(
        self,
        request: HttpRequest,
        obj: Any,
        form: ModelForm,
        change: bool,
    ) -> None:
        stamp_audit(obj, request.user, created=not change)
        super().save_model(request, obj, form, change)  # type: ignore[misc]

    @transaction.atomic
    def save_formset(
        self,
        request: HttpRequest,
        form: ModelForm,  # noqa: ARG002
        formset: BaseInlineFormSet,
        change: bool,  # noqa: ARG002
    ) -> None:
        instances = formset.save(commit=False)
        for child in instances:
            stamp_audit(child, request.user, created=child.pk is None)
            child.save()
        formset.save_m2m()
        for obj in formset.deleted_objects:
            obj.delete()
