"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dancehub.api.settings import Settings
from dancehub.auth import AuthMiddleware, JWTService, PasswordService, TokenSessionResolver
from dancehub.auth.endpoints import create_auth_router
from dancehub.auth.recaptcha import RecaptchaVerifier
from dancehub.crud import CrudError, CrudRouteGenerator, ValidationError, ValidationIssue
from dancehub.crud.responses import error_response, success_response
from dancehub.features.events import events_config
from dancehub.features.locations import locations_config
from dancehub.features.posts import create_reactions_router, posts_config
from dancehub.features.tags import tags_config
from dancehub.features.uploads import (
    DataUrlStorage,
    FallbackImageStorage,
    ImageStorage,
    ImgBBStorage,
    create_upload_router,
)
from dancehub.features.users import users_config
from dancehub.persistence import DocumentStore, create_store

logger = logging.getLogger(__name__)

COLLECTIONS = ("users", "posts", "events", "locations", "tags")


def default_base_path() -> Path:
    """Project root, whether started from the repo root or from backend/."""
    cwd = Path.cwd()
    return cwd.parent if cwd.name == "backend" else cwd


def create_app(
    settings: Settings | None = None,
    store: DocumentStore | None = None,
    image_storage: ImageStorage | None = None,
) -> FastAPI:
    """Build the API with its store, resolver and routers.

    Everything the routes share is created here and exposed on
    ``app.state``. The store is connected on startup and closed on
    shutdown.
    """
    settings = settings or Settings.from_env(default_base_path())
    store = store or create_store(settings.database)

    jwt_service = JWTService(settings.secret_key)
    password_service = PasswordService(rounds=settings.bcrypt_rounds)
    resolver = TokenSessionResolver(jwt_service, store, cookie_name=settings.session_cookie)

    if image_storage is None:
        image_storage = FallbackImageStorage(ImgBBStorage(settings.imgbb_api_key), DataUrlStorage())

    recaptcha = None
    if settings.recaptcha_secret_key:
        recaptcha = RecaptchaVerifier(settings.recaptcha_secret_key)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Connect the store on startup, close it on shutdown."""
        store.connect()
        for collection in COLLECTIONS:
            store.ensure_collection(collection)
        logger.info("Document store ready (%s)", settings.database.url.split("://")[0])

        yield

        store.close()

    app = FastAPI(title="DanceHub API", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.resolver = resolver
    app.state.jwt_service = jwt_service
    app.state.password_service = password_service

    app.add_middleware(AuthMiddleware, resolver=resolver)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CrudError)
    async def crud_error_handler(request: Request, exc: CrudError) -> JSONResponse:
        return error_response(exc).to_json_response()

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        issues = [
            ValidationIssue(
                # Drop the leading "body"/"query" segment
                path=".".join(str(part) for part in err["loc"][1:]),
                message=err["msg"],
            )
            for err in exc.errors()
        ]
        return error_response(ValidationError(issues)).to_json_response()

    # --- Generated CRUD routes ---

    configs = [
        events_config(store),
        locations_config(store),
        posts_config(store),
        tags_config(store),
        users_config(store, password_service),
    ]
    for config in configs:
        app.include_router(CrudRouteGenerator(config, store, resolver).router())

    # --- Hand-written routes ---

    app.include_router(create_reactions_router(store))
    app.include_router(create_upload_router(image_storage))
    app.include_router(
        create_auth_router(
            jwt_service=jwt_service,
            password_service=password_service,
            store=store,
            recaptcha=recaptcha,
            cookie_name=settings.session_cookie,
            cookie_secure=settings.cookie_secure,
        )
    )

    @app.get("/api/health")
    async def health() -> JSONResponse:
        return success_response({"status": "ok"}).to_json_response()

    return app
