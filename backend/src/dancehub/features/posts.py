"""Post routes: generated CRUD plus the reaction toggle."""

from typing import Any, Literal

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from dancehub.auth.dependencies import require_identity
from dancehub.auth.types import Identity
from dancehub.crud.config import EntityConfig
from dancehub.crud.errors import DomainError, NotFound
from dancehub.crud.responses import success_response
from dancehub.features.common import load_owned, timestamp
from dancehub.features.schemas import POST_SCHEMA
from dancehub.persistence import DocumentStore, Filter
from dancehub.persistence.filters import eq, or_

# reactionType -> (post field holding reactors, user field holding post ids)
REACTIONS = {
    "lightning": ("lightnings", "lovedPosts"),
    "fire": ("fires", "likedPosts"),
    "ice": ("ices", "savedPosts"),
}


def posts_config(store: DocumentStore) -> EntityConfig:
    """Build the posts configuration bound to a store.

    Posts are public: anonymous callers may list, read and create them
    (naming an ``authorId``), but only the author or an admin may change
    or delete one.
    """

    async def visible_posts(identity: Identity | None, params) -> Filter | None:
        published = eq("published", True)
        if identity is None:
            return published
        return or_(published, eq("authorId", identity.subject))

    async def before_create(data: dict[str, Any], identity: Identity | None) -> dict[str, Any]:
        author_id = identity.subject if identity else data.get("authorId")
        if not author_id:
            raise DomainError("authorId is required")

        author = store.get("users", author_id)
        if author is None:
            raise DomainError("Author not found")

        now = timestamp()
        post = {
            **data,
            "authorId": author_id,
            "authorName": author.get("name"),
            "authorEmail": author.get("email"),
            "lightnings": [],
            "fires": [],
            "ices": [],
            "createdAt": now,
            "updatedAt": now,
        }
        if author.get("avatars"):
            post["authorProfileImage"] = author["avatars"][0]
        return post

    async def before_update(
        data: dict[str, Any], identity: Identity | None, id: str
    ) -> dict[str, Any]:
        load_owned(store, "posts", id, identity, "authorId")
        changes = {k: v for k, v in data.items() if k != "authorId"}
        changes["updatedAt"] = timestamp()
        return changes

    async def before_delete(identity: Identity | None, id: str) -> bool:
        load_owned(store, "posts", id, identity, "authorId")
        return True

    return EntityConfig(
        entity="posts",
        schema=POST_SCHEMA,
        auth=False,
        sort=(("createdAt", -1),),
        custom_filters=visible_posts,
        before_create=before_create,
        before_update=before_update,
        before_delete=before_delete,
    )


class ReactionRequest(BaseModel):
    """Request body for toggling a reaction."""

    reactionType: Literal["lightning", "fire", "ice"]


def create_reactions_router(store: DocumentStore) -> APIRouter:
    """Create the router for POST /api/posts/{id}/react."""
    router = APIRouter(prefix="/api/posts", tags=["posts"])

    @router.post("/{id}/react")
    async def react(
        id: str,
        request: ReactionRequest,
        identity: Identity = Depends(require_identity),
    ) -> JSONResponse:
        """Toggle the caller's reaction on a post.

        Adds the reaction if absent, removes it if present, and mirrors
        the change in the user's matching post list.
        """
        post = store.get("posts", id)
        if post is None:
            raise NotFound("Post not found")

        user = store.get("users", identity.subject)
        if user is None:
            raise NotFound("User not found")

        post_field, user_field = REACTIONS[request.reactionType]
        reactions = post.get(post_field) or []
        user_posts = user.get(user_field) or []

        has_reacted = any(r.get("userId") == identity.subject for r in reactions)
        if has_reacted:
            reactions = [r for r in reactions if r.get("userId") != identity.subject]
            user_posts = [p for p in user_posts if p != id]
        else:
            reactor = {"userId": identity.subject, "name": user.get("name") or "Unknown"}
            if user.get("avatars"):
                reactor["profileImage"] = user["avatars"][0]
            reactions = [*reactions, reactor]
            user_posts = [*user_posts, id]

        now = timestamp()
        store.update_one("posts", id, {post_field: reactions, "updatedAt": now})
        store.update_one("users", identity.subject, {user_field: user_posts, "updatedAt": now})

        return success_response(
            {"hasReacted": not has_reacted, "reactionCount": len(reactions)}
        ).to_json_response()

    return router
