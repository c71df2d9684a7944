"""User routes.

Passwords are hashed on create and never returned. Role and status are
admin-controlled; everyone else may only edit their own profile.
"""

import logging
from typing import Any

from dancehub.auth.password import PasswordService
from dancehub.auth.types import DEFAULT_ROLE, Identity
from dancehub.crud.config import EntityConfig
from dancehub.crud.errors import Conflict, DomainError, Forbidden
from dancehub.features.common import timestamp
from dancehub.features.schemas import USER_SCHEMA
from dancehub.persistence import DocumentStore, Filter
from dancehub.persistence.filters import eq

logger = logging.getLogger(__name__)

ADMIN_ONLY_FIELDS = ("role", "status")


def find_user_by_email(store: DocumentStore, email: str) -> dict[str, Any] | None:
    return store.find_one("users", eq("email", email))


def users_config(store: DocumentStore, password_service: PasswordService) -> EntityConfig:
    """Build the users configuration bound to a store."""

    async def active_users(identity: Identity | None, params) -> Filter | None:
        # Admins may ask for any status explicitly
        if identity is not None and identity.is_admin and "status" in params:
            return None
        return eq("status", "active")

    async def before_create(data: dict[str, Any], identity: Identity | None) -> dict[str, Any]:
        if identity is None or not identity.is_admin:
            raise Forbidden("Only admins can create users")

        if find_user_by_email(store, data["email"]) is not None:
            raise Conflict("A user with this email already exists")

        now = timestamp()
        return {
            **data,
            "password": password_service.hash(data["password"]),
            "role": data.get("role") or DEFAULT_ROLE,
            "status": data.get("status") or "active",
            "createdById": identity.subject,
            "createdAt": now,
            "updatedAt": now,
        }

    async def before_update(
        data: dict[str, Any], identity: Identity | None, id: str
    ) -> dict[str, Any]:
        if identity is None:
            raise Forbidden()

        if not identity.is_admin:
            if any(field in data for field in ADMIN_ONLY_FIELDS):
                raise Forbidden("Only admins can change user roles or status")
            if identity.subject != id:
                raise Forbidden("Can only update your own profile")

        if "password" in data:
            raise DomainError("Use /api/auth/change-password to change a password")

        if "email" in data:
            existing = find_user_by_email(store, data["email"])
            if existing is not None and existing["id"] != id:
                raise Conflict("A user with this email already exists")

        return {
            **data,
            "updatedById": identity.subject,
            "updatedByName": identity.name,
            "updatedAt": timestamp(),
        }

    async def before_delete(identity: Identity | None, id: str) -> bool:
        if identity is None or not identity.is_admin:
            raise Forbidden("Only admins can delete users")
        if identity.subject == id:
            raise DomainError("Cannot delete your own account")
        return True

    async def after_create(record: dict[str, Any], identity: Identity | None) -> None:
        logger.info("User %s created by %s", record.get("email"), _actor(identity))

    async def after_update(data: dict[str, Any], identity: Identity | None, id: str) -> None:
        logger.info("User %s updated by %s", id, _actor(identity))

    async def after_delete(id: str, identity: Identity | None) -> None:
        logger.info("User %s deleted by %s", id, _actor(identity))

    return EntityConfig(
        entity="users",
        schema=USER_SCHEMA,
        auth=True,
        projection={"password": 0},
        sort=(("createdAt", -1),),
        custom_filters=active_users,
        before_create=before_create,
        before_update=before_update,
        before_delete=before_delete,
        after_create=after_create,
        after_update=after_update,
        after_delete=after_delete,
    )


def _actor(identity: Identity | None) -> str:
    if identity is None:
        return "anonymous"
    return identity.email or identity.subject
