"""OpenAPI response fragments shared by every view module."""

from drf_spectacular.utils import OpenApiResponse

AUTH_RESPONSES = {
    401: OpenApiResponse(description="Authentication required."),
    403: OpenApiResponse(description="Forbidden"),
    404: OpenApiResponse(description="Not Found"),
}

VALIDATION_RESPONSE = {
    422: OpenApiResponse(description="Semantic validation failed."),
}

BAD_REQUEST_RESPONSE = {
    400: OpenApiResponse(description="Validation error."),
}

THROTTLED_RESPONSE = {
    429: OpenApiResponse(description="Too many requests / throttled."),
}

DELETED_RESPONSE = {
    204: OpenApiResponse(description="Deleted"),
}


def x_permissions(*roles: str, ownership: str | None = None) -> dict:
    """``x-permissions`` extension documenting who may call an operation."""
    rules = {"required_roles": list(roles)}
    if ownership:
        rules["ownership"] = ownership
    return {"x-permissions": rules}
