"""
JSON API helpers shared by every app.

Every API handler is wrapped in ``api_view`` which enforces the allowed
methods and converts exceptions into ``{"success": false, "error": ...}``
responses:

    Http404             -> 404
    PermissionDenied    -> 403
    NotAuthenticated    -> 401
    ApiError / BadRequest / ValidationError -> 400
    anything else       -> 500 (logged with traceback)
"""
import json
import logging
from datetime import date, datetime, time
from decimal import Decimal
from functools import wraps

from django.core.exceptions import BadRequest, PermissionDenied, ValidationError
from django.db import models
from django.forms.models import model_to_dict
from django.http import Http404, JsonResponse
from django.utils.dateparse import parse_date, parse_time

from core.exceptions import ApiError

logger = logging.getLogger(__name__)


def json_success(status=200, **payload):
    return JsonResponse({"success": True, **payload}, status=status)


def json_error(message, status=400, **extra):
    return JsonResponse({"success": False, "error": message, **extra}, status=status)


def _validation_message(exc: ValidationError) -> str:
    if hasattr(exc, "error_dict"):
        return "; ".join(
            f"{field}: {' '.join(messages)}" for field, messages in exc.message_dict.items()
        )
    return "; ".join(exc.messages)


def api_view(*methods, error_message="Internal server error"):
    """
    Decorator for JSON API handlers.

    Usage:
        @api_view("GET", "POST", error_message="Failed to load cohorts")
        @require_app_access
        def cohorts(request):
            ...
    """

    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            if methods and request.method not in methods:
                return json_error("Method not allowed", status=405)
            try:
                return view_func(request, *args, **kwargs)
            except Http404 as exc:
                return json_error(str(exc) or "Not found", status=404)
            except PermissionDenied as exc:
                return json_error(str(exc) or "Forbidden", status=403)
            except ApiError as exc:
                return json_error(str(exc), status=exc.status_code)
            except ValidationError as exc:
                return json_error(_validation_message(exc), status=400)
            except BadRequest as exc:
                return json_error(str(exc) or "Bad request", status=400)
            except Exception:
                logger.exception("%s failed", view_func.__name__)
                return json_error(error_message, status=500)

        return wrapper

    return decorator


# ---- Request parsing ----


def parse_json_body(request) -> dict:
    """Decode a JSON object body; an empty body is an empty dict."""
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (TypeError, ValueError):
        raise BadRequest("Invalid JSON body")
    if not isinstance(data, dict):
        raise BadRequest("JSON body must be an object")
    return data


def require_fields(data: dict, *fields):
    missing = [f for f in fields if data.get(f) in (None, "", [])]
    if missing:
        raise ApiError(f"Missing required fields: {', '.join(missing)}")


def get_bool(params, name, default=False):
    value = params.get(name)
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).lower() in ("1", "true", "yes", "on")


def get_int(params, name, default=None, minimum=None, maximum=None):
    value = params.get(name)
    if value in (None, ""):
        return default
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ApiError(f"Invalid {name}")
    if minimum is not None:
        value = max(minimum, value)
    if maximum is not None:
        value = min(maximum, value)
    return value


def to_date(value, field="date"):
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    parsed = parse_date(str(value)[:10])
    if parsed is None:
        raise ApiError(f"Invalid {field}")
    return parsed


def to_time(value, field="time"):
    if value in (None, ""):
        return None
    if isinstance(value, time):
        return value
    parsed = parse_time(str(value))
    if parsed is None:
        raise ApiError(f"Invalid {field}")
    return parsed


# ---- Serialisation ----


def serialize_value(value):
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


def model_to_json(obj, fields):
    """Flat dict of ``fields`` from a model instance, JSON-ready."""
    return {field: serialize_value(getattr(obj, field)) for field in fields}


def user_summary(user):
    if user is None:
        return None
    return {
        "id": user.pk,
        "name": user.get_full_name() or user.username,
        "email": user.email,
    }


def validate_form(form_class, payload, instance=None):
    """
    Bind a ModelForm to a JSON payload and validate it.

    For updates the instance's current values fill in whatever the payload
    leaves out, so PUT bodies can be partial. Checkbox fields missing from a
    create payload take the model default rather than False.
    Raises ValidationError (400).
    """
    data = {}
    if instance is not None:
        data.update(model_to_dict(instance, fields=form_class._meta.fields))
    else:
        for field in form_class._meta.model._meta.fields:
            if field.name in form_class._meta.fields and isinstance(field, models.BooleanField):
                data[field.name] = field.get_default()
    data.update(payload)
    form = form_class(data=data, instance=instance)
    if not form.is_valid():
        raise ValidationError(
            {field: [str(message) for message in errors] for field, errors in form.errors.items()}
        )
    return form
