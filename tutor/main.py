# tutor/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tutor.auth import auth_routes
from tutor.config import LOG_FORMAT, Settings, get_settings
from tutor.database.store import ContextStore, SessionStore, UserStore
from tutor.routes import admin, billing, conversation, meta, tts
from tutor.services.billing import BillingService, StripeGateway
from tutor.services.llm_client import ChatCompletionClient
from tutor.services.relay import ConversationRelay
from tutor.services.tts_service import TTSClient

# Configure logging
logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Language tutor API starting")
    yield
    await app.state.llm_client.aclose()
    await app.state.tts_client.aclose()
    logger.info("Upstream clients closed")


def create_app(
    settings: Optional[Settings] = None,
    user_store: Optional[UserStore] = None,
    session_store: Optional[SessionStore] = None,
    context_store: Optional[ContextStore] = None,
    llm_client: Optional[ChatCompletionClient] = None,
    tts_client: Optional[TTSClient] = None,
    billing_service: Optional[BillingService] = None,
) -> FastAPI:
    """Builds the app; anything not passed in is constructed from settings."""
    settings = settings or get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    user_store = user_store or UserStore(settings.users_file, admin_email=settings.admin_email)
    session_store = session_store or SessionStore()
    context_store = context_store or ContextStore()
    llm_client = llm_client or ChatCompletionClient(settings.llm_base_url, settings.llm_api_key, settings.llm_model)
    tts_client = tts_client or TTSClient(settings.elevenlabs_api_key, settings.elevenlabs_model)
    if billing_service is None:
        gateway = StripeGateway(settings) if settings.billing_enabled else None
        billing_service = BillingService(user_store, gateway)
    if not billing_service.enabled:
        logger.warning("STRIPE_SECRET_KEY not set: billing disabled, new users get free access")

    app = FastAPI(title="Language Tutor API", lifespan=lifespan)
    app.state.settings = settings
    app.state.user_store = user_store
    app.state.session_store = session_store
    app.state.context_store = context_store
    app.state.llm_client = llm_client
    app.state.tts_client = tts_client
    app.state.billing = billing_service
    app.state.relay = ConversationRelay(session_store, llm_client, context_store)

    # CORS Configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(auth_routes.router, prefix="/api/auth")
    app.include_router(meta.router, prefix="/api")
    app.include_router(conversation.router, prefix="/api/conversation")
    app.include_router(tts.router, prefix="/api/tts")
    app.include_router(billing.router, prefix="/api/billing")
    app.include_router(admin.router, prefix="/api/admin")

    @app.get("/")
    async def root():
        """Root endpoint for the API."""
        return {"message": "Language Tutor API is running"}

    return app


# Run with: uvicorn tutor.main:create_app --factory --port 8080
