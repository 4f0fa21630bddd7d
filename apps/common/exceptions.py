from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler


class DomainError(Exception):
    code = "error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request failed"

    def __init__(self, detail=None, fields=None):
        self.detail = detail or self.default_detail
        self.fields = fields or {}
        super().__init__(self.detail)


class NotFound(DomainError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found."


class InvalidArgument(DomainError):
    code = "invalid_argument"
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid argument."


class Conflict(DomainError):
    code = "conflict"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The resource is not in a state that allows this operation."


class InsufficientBalance(Conflict):
    code = "insufficient_balance"
    default_detail = "Insufficient credit balance."


def api_exception_handler(exc, context):
    if isinstance(exc, DomainError):
        return Response(
            {"code": exc.code, "detail": exc.detail, "fields": exc.fields},
            status=exc.status_code,
        )

    response = exception_handler(exc, context)
    if response is None:
        return response

    if isinstance(response.data, dict):
        detail = response.data.get("detail", "Request failed")
        fields = {k: v for k, v in response.data.items() if k != "detail"}
    else:
        detail = "Request failed"
        fields = {}

    response.data = {
        "code": getattr(exc, "default_code", "error"),
        "detail": detail,
        "fields": fields,
    }
    return response
