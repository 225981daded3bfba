from dealfinder.schemas.common import ErrorOut


_ERROR_EXAMPLES: dict[int, tuple[str, str]] = {
    400: ("validation_error", "Validation failed"),
    401: ("unauthorized", "Not authenticated"),
    403: ("forbidden", "Not authorized to perform this action"),
    404: ("not_found", "Resource not found"),
    409: ("conflict", "Conflict"),
    429: ("rate_limited", "Too many requests"),
    500: ("internal_error", "Internal server error"),
}


def error_responses(*status_codes: int) -> dict[int, dict]:
    responses: dict[int, dict] = {}
    for status_code in status_codes:
        code, message = _ERROR_EXAMPLES.get(status_code, ("http_error", "HTTP error"))
        responses[status_code] = {
            "model": ErrorOut,
            "description": message,
            "content": {
                "application/json": {
                    "example": {
                        "success": False,
                        "message": message,
                        "error": {
                            "code": code,
                            "message": message,
                            "request_id": "request-id",
                            "path": "/api/example",
                            "details": None,
                        },
                    }
                }
            },
        }
    return responses
