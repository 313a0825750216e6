"""
Accounts Service
User registration, login and bearer token issuance over HTTP
"""

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

import structlog
from fastapi import Depends, FastAPI, Header, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from accounts import __version__
from accounts.config import Settings
from accounts.core import (
    Credential,
    DatabaseStorage,
    EventPublisher,
    KafkaEventPublisher,
    LoggingEventPublisher,
    LoginFlow,
    PasswordHasher,
    RegisterRequest,
    RegistrationFlow,
    TokenIssuer,
    TokenResponse,
    UserDirectory,
    UserIdentity,
    UserResponse,
    UserStore,
)
from accounts.errors import AccountsError, InternalError, InvalidTokenError


def configure_logging(level: str = "INFO") -> None:
    """Configure structured logging"""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO))
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger()

# Security scheme
security = HTTPBearer(auto_error=False)


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str


def build_event_publisher(settings: Settings) -> EventPublisher:
    if settings.kafka_bootstrap_servers:
        return KafkaEventPublisher(
            settings.kafka_bootstrap_servers,
            settings.kafka_topic_user_events,
        )
    logger.warning("KAFKA_BOOTSTRAP_SERVERS not set, user events will not be published")
    return LoggingEventPublisher()


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[UserStore] = None,
    events: Optional[EventPublisher] = None,
    hasher: Optional[PasswordHasher] = None,
) -> FastAPI:
    """Wire the account components into a FastAPI application"""
    settings = settings or Settings.from_env()
    store = store or DatabaseStorage(settings.database_url)
    events = events or build_event_publisher(settings)
    hasher = hasher or PasswordHasher(rounds=settings.bcrypt_rounds)
    issuer = TokenIssuer(
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        ttl_seconds=settings.token_ttl_seconds,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.ensure_schema:
            await store.ensure_schema()
        events.start()
        yield
        events.close()

    app = FastAPI(
        title="Accounts Service",
        description="User registration, login and bearer token issuance",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.registration = RegistrationFlow(
        store,
        hasher,
        issuer,
        events,
        min_password_length=settings.min_password_length,
        max_name_length=settings.max_name_length,
        max_email_length=settings.max_email_length,
    )
    app.state.login = LoginFlow(store, hasher)
    app.state.directory = UserDirectory(store, issuer)

    @app.exception_handler(AccountsError)
    async def accounts_error_handler(request: Request, exc: AccountsError):
        if isinstance(exc, InternalError):
            logger.error(
                "Request failed",
                path=request.url.path,
                error_type=type(exc).__name__,
                error=exc.detail,
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.public_message},
        )

    async def get_current_user(
        request: Request,
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
        token_header: Optional[str] = Header(None, alias="Token"),
    ) -> UserIdentity:
        """Get current authenticated user"""
        token = credentials.credentials if credentials else token_header
        if not token:
            raise InvalidTokenError("Authentication required")
        return await request.app.state.directory.current_user(token)

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """Health check endpoint"""
        return HealthResponse(
            status="healthy",
            service="accounts",
            version=__version__,
        )

    @app.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
    async def register(register_request: RegisterRequest, request: Request):
        """Create a new user"""
        user = await request.app.state.registration.register(register_request)
        return user.public()

    @app.post("/login", response_model=TokenResponse)
    async def login(credential: Credential, request: Request):
        """Log a user in and return their token"""
        return await request.app.state.login.login(credential)

    @app.get("/me", response_model=UserResponse)
    async def get_me(current_user: UserIdentity = Depends(get_current_user)):
        """Get the current user"""
        return current_user.public()

    @app.get("/users", response_model=List[UserResponse])
    async def get_users(
        request: Request,
        current_user: UserIdentity = Depends(get_current_user),
    ):
        """Get all users, tokens cleared"""
        users = await request.app.state.directory.list_users()
        return [user.public() for user in users]

    return app


configure_logging(Settings.from_env().log_level)

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("accounts.app:app", host="0.0.0.0", port=8000, reload=False, log_config=None)
