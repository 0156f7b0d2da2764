"""DRF glue: map fulfillment errors onto HTTP responses."""

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from .exceptions import (
    ConflictError,
    ForbiddenError,
    FulfillmentError,
    NotFoundError,
    OperationTimeoutError,
    ServerError,
    ValidationError,
)

STATUS_CODES = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    ConflictError: status.HTTP_409_CONFLICT,
    ServerError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    OperationTimeoutError: status.HTTP_504_GATEWAY_TIMEOUT,
}


def status_code_for(exc: FulfillmentError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return status.HTTP_400_BAD_REQUEST


def exception_handler(exc, context):
    if isinstance(exc, FulfillmentError):
        return Response(
            {"detail": exc.message, "code": exc.code, "data": exc.data},
            status=status_code_for(exc),
        )
    return drf_exception_handler(exc, context)
