from fastapi import HTTPException, status

_CONFLICTS = {"invoice_number_exists", "edit_request_already_reviewed"}


def http_error_from(exc: ValueError) -> HTTPException:
    """Map a service-layer ValueError message onto an HTTP status."""
    message = str(exc)
    if message.endswith("_not_found"):
        code = status.HTTP_404_NOT_FOUND
    elif message in _CONFLICTS:
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=message)
