"""
Exceptions that the JSON API turns into error responses.

``core.api.api_view`` maps these (and Django's own Http404 / PermissionDenied)
to ``{"success": false, "error": ...}`` bodies with the matching status code.
"""


class ApiError(Exception):
    status_code = 400
    default_message = "Bad request"

    def __init__(self, message=None):
        super().__init__(message or self.default_message)


class NotAuthenticated(ApiError):
    status_code = 401
    default_message = "Unauthorized"


class WorkflowError(ApiError):
    """An action is not allowed in the record's current state."""

    status_code = 400
    default_message = "Action not allowed in the current state"
