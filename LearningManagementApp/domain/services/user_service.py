"""Administrative user management."""

import logging
from typing import Any

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import ProtectedError
from rest_framework.exceptions import PermissionDenied, ValidationError

from LearningManagementApp.core.exceptions import UnprocessableEntity

logger = logging.getLogger(__name__)

User = get_user_model()


def _ensure_admin(actor) -> None:
    if not actor.is_admin:
        raise PermissionDenied("Access denied. Required role: admin")


@transaction.atomic
def create_user(actor, data: dict[str, Any]) -> User:
    _ensure_admin(actor)
    data = dict(data)
    password = data.pop("password")
    data.setdefault("username", data["email"])
    user = User(**data)
    user.set_password(password)
    user.save()
    logger.info("User %s created by admin %s", user.pk, actor.pk)
    return user


@transaction.atomic
def update_user(actor, user: User, data: dict[str, Any]) -> User:
    _ensure_admin(actor)
    data = dict(data)
    password = data.pop("password", None)
    for field, value in data.items():
        setattr(user, field, value)
    if password:
        user.set_password(password)
    user.save()
    return user


@transaction.atomic
def delete_user(actor, user: User) -> None:
    _ensure_admin(actor)
    if actor.pk == user.pk:
        raise ValidationError({"detail": "You cannot delete your own account."})
    user_id = user.pk
    try:
        user.delete()
    except ProtectedError:
        raise UnprocessableEntity("User still teaches courses; reassign them first.")
    logger.info("User %s deleted by admin %s", user_id, actor.pk)
