"""API exceptions for domain rule violations not covered by DRF's built-ins."""

from rest_framework import status
from rest_framework.exceptions import APIException


class UnprocessableEntity(APIException):
    """Request is well-formed but breaks a business rule (quiz closed, reply on locked thread...)."""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = "Semantic validation failed."
    default_code = "unprocessable_entity"


class Conflict(APIException):
    """Resource already exists in the requested state."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict with current resource state."
    default_code = "conflict"
