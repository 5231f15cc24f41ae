"""
Troubleshooter Backend

FastAPI application serving the infrastructure troubleshooting agent API.
"""

import base64
import logging
import time
from datetime import datetime, timezone
from typing import Any, List, Optional

from dotenv import load_dotenv

# Load .env before config reads the environment
load_dotenv()

from fastapi import Body, Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .ai_client import AIClient
from .auth import TOKEN_LIFETIME_LABEL, authenticate, get_current_user, issue_token
from .matcher import find_best_match
from .models import (
    AnalyzeRequest,
    AnalyzeResponse,
    ChatResponse,
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    PlaybookCategory,
    PlaybookListResponse,
    PlaybookMatchSummary,
    ScriptDetailResponse,
    ScriptListResponse,
    ScriptUploadResponse,
    SettingsResponse,
    TokenUsage,
)
from .playbooks import PlaybookCatalog, load_catalog
from .prompts import MAX_SCRIPTS, build_messages, format_script_block, normalize_history, parse_json_list
from .report import ReportInput, build_report
from .script_store import ScriptStore
from .settings_store import SettingsStore
from .config import (
    ALLOWED_ORIGINS,
    HOST,
    OPENAI_BASE_URL,
    OPENAI_MODEL,
    PLAYBOOKS_PATH,
    PORT,
    SCRIPTS_DIR,
    SETTINGS_PATH,
    validate_environment,
)

SERVICE_NAME = "AI Infrastructure Troubleshooting Agent"
SERVICE_VERSION = "1.2.0"

MAX_IMAGE_BYTES = 6 * 1024 * 1024
MAX_SCRIPT_BYTES = 512 * 1024

START_TIME = time.monotonic()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=SERVICE_NAME,
    description="LLM-backed infrastructure troubleshooting with playbook matching",
    version=SERVICE_VERSION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.on_event("startup")
async def startup_event():
    """Validate the environment and initialize services."""
    validate_environment()
    app.state.catalog = load_catalog(PLAYBOOKS_PATH)
    app.state.settings_store = SettingsStore(SETTINGS_PATH)
    app.state.script_store = ScriptStore(SCRIPTS_DIR)
    app.state.ai_client = AIClient(base_url=OPENAI_BASE_URL, model=OPENAI_MODEL)
    logger.info(f"{SERVICE_NAME} starting on {HOST}:{PORT}")
    logger.info(f"Settings file: {SETTINGS_PATH}; scripts directory: {SCRIPTS_DIR}")


@app.on_event("shutdown")
async def shutdown_event():
    """Clean up services on shutdown."""
    ai_client = getattr(app.state, "ai_client", None)
    if ai_client:
        await ai_client.close()
    logger.info(f"{SERVICE_NAME} shut down")


def get_catalog(request: Request) -> PlaybookCatalog:
    return request.app.state.catalog


def get_settings_store(request: Request) -> SettingsStore:
    return request.app.state.settings_store


def get_script_store(request: Request) -> ScriptStore:
    return request.app.state.script_store


def get_ai_client(request: Request) -> AIClient:
    return request.app.state.ai_client


@app.get("/")
async def service_info():
    """Describe the service and its endpoints."""
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "status": "operational",
        "endpoints": {
            "health": "GET /healthz",
            "auth": "POST /auth/login",
            "chat": "POST /api/chat",
            "settings": "GET/PUT /api/settings",
            "scripts": "GET/POST/DELETE /api/scripts",
            "playbooks": "GET /api/playbooks",
            "analyze": "POST /api/analyze",
        },
    }


@app.get("/healthz")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": time.monotonic() - START_TIME,
    }


# ============================================================================
# Auth Endpoints
# ============================================================================

@app.post("/auth/login", response_model=LoginResponse)
async def login(request: LoginRequest):
    """
    Exchange admin credentials for a bearer token.
    """
    if not request.username or not request.password:
        raise HTTPException(status_code=400, detail="Username and password are required")

    if not await authenticate(request.username, request.password):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token = issue_token(request.username.strip())
    logger.info(f"Issued token for {request.username.strip()}")
    return LoginResponse(token=token, expiresIn=TOKEN_LIFETIME_LABEL)


# ============================================================================
# Settings Endpoints
# ============================================================================

@app.get("/api/settings", response_model=SettingsResponse)
async def get_settings(
    username: str = Depends(get_current_user),
    store: SettingsStore = Depends(get_settings_store),
):
    try:
        return SettingsResponse(settings=store.get(username))
    except (OSError, ValueError) as e:
        logger.error(f"GET settings error: {e}")
        raise HTTPException(status_code=500, detail="Failed to load settings")


@app.put("/api/settings", response_model=SettingsResponse)
async def put_settings(
    body: Any = Body(None),
    username: str = Depends(get_current_user),
    store: SettingsStore = Depends(get_settings_store),
):
    """
    Save settings. Accepts either {"settings": {...}} or the settings object itself.
    """
    incoming = body.get("settings") if isinstance(body, dict) and body.get("settings") else body
    try:
        return SettingsResponse(settings=store.save(username, incoming))
    except (OSError, ValueError) as e:
        logger.error(f"PUT settings error: {e}")
        raise HTTPException(status_code=500, detail="Failed to save settings")


# ============================================================================
# Script Library Endpoints
# ============================================================================

@app.post("/api/scripts", response_model=ScriptUploadResponse)
async def upload_script(
    file: Optional[UploadFile] = File(None),
    name: Optional[str] = Form(None),
    language: Optional[str] = Form(None),
    tags: Optional[List[str]] = Form(None),
    username: str = Depends(get_current_user),
    store: ScriptStore = Depends(get_script_store),
):
    """
    Upload a script text file into the user's library.
    """
    if file is None:
        raise HTTPException(status_code=400, detail="No file uploaded")

    data = await file.read()
    if len(data) > MAX_SCRIPT_BYTES:
        raise HTTPException(status_code=400, detail="Script exceeds the 512KB size limit")

    try:
        meta = store.create(
            username,
            data=data,
            original_name=file.filename,
            name=name,
            language=language,
            tags=[part for value in tags or [] for part in value.split(",")],
        )
    except ValueError as e:
        logger.warning(f"Rejected script upload: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    return ScriptUploadResponse(script=meta)


@app.get("/api/scripts", response_model=ScriptListResponse)
async def list_scripts(
    username: str = Depends(get_current_user),
    store: ScriptStore = Depends(get_script_store),
):
    scripts = store.list_scripts(username)
    return ScriptListResponse(scripts=scripts, count=len(scripts))


@app.get("/api/scripts/{script_id}", response_model=ScriptDetailResponse)
async def get_script(
    script_id: str,
    username: str = Depends(get_current_user),
    store: ScriptStore = Depends(get_script_store),
):
    script_id = script_id.strip()
    if not script_id:
        raise HTTPException(status_code=400, detail="Missing script ID")

    script = store.get(username, script_id)
    if not script:
        raise HTTPException(status_code=404, detail="Script not found")
    return ScriptDetailResponse(script=script["meta"], content=script["content"])


@app.delete("/api/scripts/{script_id}", response_model=MessageResponse)
async def delete_script(
    script_id: str,
    username: str = Depends(get_current_user),
    store: ScriptStore = Depends(get_script_store),
):
    script_id = script_id.strip()
    if not script_id:
        raise HTTPException(status_code=400, detail="Missing script ID")

    if not store.delete(username, script_id):
        raise HTTPException(status_code=404, detail="Script not found")
    return MessageResponse(message="Script deleted successfully")


# ============================================================================
# Chat Endpoint
# ============================================================================

@app.post("/api/chat", response_model=ChatResponse)
async def chat(
    message: Optional[str] = Form(None),
    history: Optional[str] = Form(None),
    selected_script_ids: Optional[str] = Form(None, alias="selectedScriptIds"),
    image: Optional[UploadFile] = File(None),
    username: str = Depends(get_current_user),
    store: ScriptStore = Depends(get_script_store),
    ai_client: AIClient = Depends(get_ai_client),
):
    """
    Ask the LLM about a problem, optionally with attached scripts and a screenshot.
    """
    if not ai_client.configured:
        raise HTTPException(status_code=500, detail="OpenAI API key not configured on server")

    message = message or ""
    if not message.strip():
        raise HTTPException(status_code=400, detail="Message is required")

    script_blocks = []
    for script_id in parse_json_list(selected_script_ids)[:MAX_SCRIPTS]:
        script_id = str(script_id or "").strip()
        if not script_id:
            continue
        script = store.get(username, script_id)
        if script:
            script_blocks.append(format_script_block(script["meta"], script["content"]))

    image_data_url = None
    if image is not None:
        mime_type = image.content_type or "image/jpeg"
        if not mime_type.startswith("image/"):
            raise HTTPException(status_code=400, detail="Only image files are allowed")
        image_bytes = await image.read()
        if len(image_bytes) > MAX_IMAGE_BYTES:
            raise HTTPException(status_code=400, detail="Image exceeds the 6MB size limit")
        image_data_url = f"data:{mime_type};base64,{base64.b64encode(image_bytes).decode('ascii')}"

    messages = build_messages(
        message,
        normalize_history(parse_json_list(history)),
        script_blocks,
        image_data_url=image_data_url,
    )

    try:
        result = await ai_client.chat(messages)
    except RuntimeError as e:
        logger.error(f"AI chat error: {e}")
        raise HTTPException(status_code=503, detail=str(e))

    if not result["text"]:
        raise HTTPException(status_code=500, detail="No response generated from AI")

    logger.info(
        f"Chat completed for {username}: {len(messages)} messages, "
        f"{len(script_blocks)} scripts, image={'yes' if image_data_url else 'no'}"
    )
    return ChatResponse(text=result["text"], model=result["model"], usage=TokenUsage(**result["usage"]))


# ============================================================================
# Playbook Endpoints
# ============================================================================

@app.get("/api/playbooks", response_model=PlaybookListResponse)
async def list_playbooks(catalog: PlaybookCatalog = Depends(get_catalog)):
    return PlaybookListResponse(categories=[
        PlaybookCategory(category=category, playbooks=[record.name for record in records])
        for category, records in catalog.items()
    ])


@app.post("/api/analyze", response_model=AnalyzeResponse)
async def analyze(request: AnalyzeRequest, catalog: PlaybookCatalog = Depends(get_catalog)):
    """
    Match a problem description against the playbooks and build the report.
    """
    match = find_best_match(catalog, request.category, request.description)
    report = build_report(ReportInput(
        category=request.category,
        device=request.device,
        context=request.context,
        description=request.description,
        match=match,
    ))

    summary = None
    if match is not None:
        record = match.record
        summary = PlaybookMatchSummary(
            name=record.name,
            score=match.score,
            keywords=list(record.keywords),
            questions=list(record.questions),
            steps=list(record.steps),
            commands=list(record.commands_for(request.device)),
        )
        logger.info(f"Analyze matched '{record.name}' (score {match.score}) in {request.category}")
    else:
        logger.info(f"Analyze found no strong match in {request.category}")

    return AnalyzeResponse(match=summary, report=report)


# ============================================================================
# Error Handlers
# ============================================================================

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request, exc):
    """Custom handler for HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=str(exc.detail),
            detail=None,
        ).dict(),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc):
    """Malformed request bodies are client errors."""
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error="Invalid request",
            detail=str(exc.errors()),
        ).dict(),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc):
    """Catch-all handler for unexpected errors."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error="Internal server error",
            detail=str(exc),
        ).dict(),
    )


# ============================================================================
# Development Server
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "troubleshooter.main:app",
        host=HOST,
        port=PORT,
        reload=True,
        log_level="info",
    )
