"""Custom exceptions shared by every service module."""


class ServiceError(Exception):
    """Base class for errors a service surfaces to its caller."""
    code = "service_error"


class PermissionDenied(ServiceError):
    """Raised when the acting subject may not perform the operation."""
    code = "permission_denied"


class NotFound(ServiceError):
    """Raised when a user, trip, thread or token does not exist."""
    code = "not_found"


class ValidationError(ServiceError):
    """Raised for malformed input."""
    code = "validation_error"


class MissingFields(ValidationError):
    """Raised when a required field was not supplied."""
    code = "missing_fields"


class InvalidVipLevel(ValidationError):
    """Raised when a VIP level is not in the tier table."""
    code = "invalid_vip_level"


class TransientNetworkError(ServiceError):
    """Raised when store I/O keeps failing after all retries."""
    code = "transient_network_error"


class StateConflict(ServiceError):
    """Raised when the current record state does not allow the operation."""
    code = "state_conflict"


class MissingContactInfo(StateConflict):
    """Raised when a driver tries to share location without a phone number on file."""
    code = "missing_contact_info"


# ---------------------- Geolocation ----------------------

class LocationError(ServiceError):
    """Base class for device geolocation failures. Never retried."""
    code = "location_error"
    user_message = "An unknown error occurred."


class GeolocationPermissionDenied(LocationError):
    code = "permission_denied"
    user_message = "Location permission denied. Please enable location services in your browser settings."


class PositionUnavailable(LocationError):
    code = "position_unavailable"
    user_message = "Location information is unavailable."


class LocationTimeout(LocationError):
    code = "timeout"
    user_message = "Location request timed out."


LOCATION_ERRORS = {
    cls.code: cls
    for cls in (GeolocationPermissionDenied, PositionUnavailable, LocationTimeout)
}


def location_error_from_code(code: str) -> LocationError:
    """Map a device-reported error code to its LocationError variant."""
    cls = LOCATION_ERRORS.get(code, LocationError)
    return cls(cls.user_message)


class TrackingLinkInvalid(ServiceError):
    """Raised for any tracking link that cannot be used. One message for every cause."""
    code = "link_expired"
    default_message = "This tracking link has expired or is invalid"
