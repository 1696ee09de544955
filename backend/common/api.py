"""Translation of service errors into DRF responses."""

import logging

from rest_framework import status
from rest_framework.response import Response

from services.exceptions import (
    ServiceError,
    PermissionDenied,
    NotFound,
    ValidationError,
    TransientNetworkError,
    StateConflict,
    LocationError,
    TrackingLinkInvalid,
)

logger = logging.getLogger(__name__)

# Checked in order; subclasses before their bases
ERROR_STATUS = (
    (LocationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (TrackingLinkInvalid, status.HTTP_410_GONE),
    (PermissionDenied, status.HTTP_403_FORBIDDEN),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (StateConflict, status.HTTP_409_CONFLICT),
    (TransientNetworkError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def error_response(exc: ServiceError) -> Response:
    for exc_class, http_status in ERROR_STATUS:
        if isinstance(exc, exc_class):
            break
    else:
        http_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    message = exc.user_message if isinstance(exc, LocationError) else str(exc)
    if http_status >= 500:
        logger.error("Service error %s: %s", exc.code, exc)
    return Response({"error": message, "code": exc.code}, status=http_status)
