"""
Travel Concierge Backend - FastAPI Application

Deterministic slot-filling concierge behind a WhatsApp-style messaging webhook.
The engine (extractor, progress tracker, composer, state machine) decides every
reply; this module only handles transport, persistence and configuration.

Python 3.9 compatible.
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Form, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, Response
from twilio.twiml.messaging_response import MessagingResponse

from engine.state import DEFAULT_MAX_HISTORY, ConversationState, HistoryEntry
from engine.turn import process_turn
from flows import (
    DEFAULT_FALLBACK_MESSAGE,
    DEFAULT_FLOW_ID,
    FlowConfigError,
    FlowSpec,
    get_flow_spec,
    load_flow_spec,
)
from .conversation import handle_inbound_message
from .models import (
    ConversationRecord,
    ConversationUpdateRequest,
    HistoryEntryModel,
    TurnRequest,
    TurnResponse,
    TurnState,
)
from .store import ConversationStore, get_store

APP_VERSION = "1.0.0"

# Load environment variables from .env
# Try multiple paths to ensure we find .env
env_paths = [
    Path(__file__).parent.parent / ".env",  # project root
    Path.cwd() / ".env",  # current working directory
]
for env_path in env_paths:
    if env_path.exists():
        load_dotenv(env_path)
        break
else:
    load_dotenv()  # fallback to default behavior

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if os.getenv("DEBUG", "false").lower() == "true" else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Active flow (Python 3.9 compatible type hints)
_active_flow_spec: Optional[FlowSpec] = None


def get_active_flow_spec() -> FlowSpec:
    """
    Flow used by the webhook and by turns without a flowId.

    FLOW_SPEC_PATH points at a JSON flow definition; when unset the built-in
    travel concierge flow is used. Raises FlowConfigError for a bad file.
    """
    global _active_flow_spec
    if _active_flow_spec is None:
        path = os.getenv("FLOW_SPEC_PATH")
        if path:
            _active_flow_spec = load_flow_spec(path)
            logger.info(f"Loaded flow {_active_flow_spec.flow_id} from {path}")
        else:
            _active_flow_spec = get_flow_spec(DEFAULT_FLOW_ID)
    return _active_flow_spec


def get_max_history() -> int:
    """MAX_HISTORY from the environment; bad values fall back to the default."""
    raw = os.getenv("MAX_HISTORY")
    if raw is None or not raw.strip():
        return DEFAULT_MAX_HISTORY
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"MAX_HISTORY={raw!r} is not a number, using {DEFAULT_MAX_HISTORY}")
        return DEFAULT_MAX_HISTORY
    if value < 1:
        logger.warning(f"MAX_HISTORY={value} is below 1, using {DEFAULT_MAX_HISTORY}")
        return DEFAULT_MAX_HISTORY
    return value


def _mask_key(key: Optional[str]) -> str:
    """Mask a secret showing only last 4 chars."""
    if not key:
        return "(not set)"
    if len(key) <= 4:
        return "****"
    return f"****{key[-4:]}"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - load configuration and fail fast on bad flow files."""
    logger.info("=" * 60)
    logger.info("Initializing Travel Concierge Backend")
    logger.info("=" * 60)

    logger.info(f"VERIFY_TOKEN present: {bool(os.getenv('VERIFY_TOKEN'))} ({_mask_key(os.getenv('VERIFY_TOKEN'))})")
    logger.info(f"DEFAULT_PHONE_REGION: {os.getenv('DEFAULT_PHONE_REGION', 'US')}")
    logger.info(f"MAX_HISTORY: {get_max_history()}")

    # FAIL FAST if the configured flow file is invalid
    try:
        spec = get_active_flow_spec()
    except FlowConfigError as e:
        logger.error(f"Flow configuration is invalid: {e}")
        raise RuntimeError(f"Flow configuration is invalid: {e}") from e

    logger.info(f"Active flow: {spec.flow_id} ({len(spec.fields_in_order)} fields)")
    logger.info("=" * 60)

    yield

    logger.info("Shutting down Travel Concierge Backend")


app = FastAPI(
    title="Travel Concierge Backend",
    description="Deterministic slot-filling travel concierge over a messaging webhook",
    version=APP_VERSION,
    lifespan=lifespan,
)

# CORS middleware for the dashboard
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    """Service banner."""
    return {"service": "Travel Concierge Backend", "version": APP_VERSION, "status": "running"}


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": APP_VERSION}


# ============================================================
# Messaging webhook
# ============================================================

def _twiml_message(text: str) -> Response:
    twiml = MessagingResponse()
    twiml.message(text)
    return Response(content=str(twiml), media_type="application/xml")


def _fallback_message() -> str:
    """Active flow's fallback reply; the built-in text if the flow can not be loaded."""
    try:
        return get_active_flow_spec().fallback_message or DEFAULT_FALLBACK_MESSAGE
    except Exception as e:
        logger.error(f"Flow unavailable for fallback reply: {type(e).__name__}: {e}")
        return DEFAULT_FALLBACK_MESSAGE


@app.post("/webhook")
async def webhook(
    Body: str = Form(""),
    From: str = Form(""),
    ProfileName: Optional[str] = Form(None),
    store: ConversationStore = Depends(get_store),
):
    """
    Inbound message webhook.

    GUARANTEE: always answers with TwiML. Any unexpected error is logged and
    answered with the active flow's fallback message.
    """
    try:
        result = await handle_inbound_message(
            store,
            get_active_flow_spec(),
            From,
            Body,
            profile_name=ProfileName,
            max_history=get_max_history(),
        )
        return _twiml_message(result.reply)
    except Exception as e:
        logger.error(f"Webhook error: {type(e).__name__}: {e}", exc_info=True)
        return _twiml_message(_fallback_message())


@app.get("/webhook")
async def verify_webhook(
    mode: Optional[str] = Query(None, alias="hub.mode"),
    token: Optional[str] = Query(None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(None, alias="hub.challenge"),
):
    """Webhook verification handshake."""
    verify_token = os.getenv("VERIFY_TOKEN")
    if mode and verify_token and token == verify_token:
        logger.info("Webhook verified")
        return PlainTextResponse(challenge or "")

    logger.warning("Webhook verification failed")
    return PlainTextResponse("Forbidden", status_code=403)


# ============================================================
# Stateless turn endpoint
# ============================================================

def _state_from_model(model: Optional[TurnState]) -> Optional[ConversationState]:
    if model is None:
        return None
    return ConversationState(
        slots=dict(model.slots),
        history=tuple(
            HistoryEntry(user_text=h.user, system_text=h.system, timestamp=h.timestamp)
            for h in model.history
        ),
        expected_field_key=model.expectedFieldKey,
        phase=model.phase,
        last_activity=model.lastActivity,
    )


def _state_to_model(state: ConversationState) -> TurnState:
    return TurnState(
        slots=dict(state.slots),
        history=[
            HistoryEntryModel(user=h.user_text, system=h.system_text, timestamp=h.timestamp)
            for h in state.history
        ],
        expectedFieldKey=state.expected_field_key,
        phase=state.phase,
        lastActivity=state.last_activity,
    )


@app.post("/v1/conversation/turn", response_model=TurnResponse)
async def conversation_turn(request: TurnRequest) -> TurnResponse:
    """
    Run one turn without server-side persistence.

    The client sends back the state returned by the previous turn.
    """
    if request.flowId:
        try:
            spec = get_flow_spec(request.flowId)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
    else:
        try:
            spec = get_active_flow_spec()
        except FlowConfigError as e:
            raise HTTPException(status_code=400, detail=str(e))

    result = process_turn(
        spec,
        request.message,
        _state_from_model(request.state),
        max_history=get_max_history(),
    )

    logger.info(
        f"Stateless turn: flow={spec.flow_id} "
        f"extracted={list(result.extracted.keys())} "
        f"progress={result.progress}% fallback={result.fallback_used}"
    )

    return TurnResponse(
        reply=result.reply,
        state=_state_to_model(result.state),
        extractedData=dict(result.extracted),
        progress=result.progress,
        nextFieldKey=result.next_field.key if result.next_field else None,
        phase=result.state.phase,
        fallbackUsed=result.fallback_used,
    )


# ============================================================
# Dashboard API
# ============================================================

@app.get("/api/conversations", response_model=List[ConversationRecord])
async def list_conversations(store: ConversationStore = Depends(get_store)) -> List[ConversationRecord]:
    """All conversations, most recent activity first."""
    return await store.list_all()


@app.patch("/api/conversations/{conversation_id}", response_model=ConversationRecord)
async def update_conversation(
    conversation_id: str,
    request: ConversationUpdateRequest,
    store: ConversationStore = Depends(get_store),
) -> ConversationRecord:
    """Set status and/or concierge notes on a conversation."""
    record = await store.get_by_id(conversation_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Conversation not found: {conversation_id}")

    async with store.lock_for(record.phone_number):
        # Re-read under the lock so a concurrent turn is not overwritten
        record = await store.get_by_id(conversation_id) or record

        now = datetime.now(timezone.utc)
        update = {"last_activity": max(record.last_activity, now)}
        if request.status:
            update["status"] = request.status
        if request.concierge_notes is not None:
            update["concierge_notes"] = request.concierge_notes

        updated = record.model_copy(update=update)
        await store.save(updated)

    logger.info(f"Dashboard update: id={conversation_id} fields={sorted(update.keys())}")
    return updated
