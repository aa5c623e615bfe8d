import logging
import sqlite3
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from . import __version__
from .auth import require_identity
from .config import (
    BASE_URL,
    CORS_ORIGIN,
    LOG_FILE,
    LOG_JSON,
    LOG_LEVEL,
    MAX_OBJECT_BYTES,
    RATE_LIMIT_RPM,
    TRUST_PROXY,
    is_debug,
    is_production,
    validate_config,
)
from .db import init_db
from .errors import (
    MoltrError,
    PayloadTooLarge,
    RateLimited,
    StoreUnavailable,
    UpstreamFailure,
    ValidationFailed,
)
from .health import health_status
from .logging_config import audit_log, configure_logging, set_request_id
from .models import (
    CreateReceiptRequest,
    CreateReceiptResponse,
    HealthStatus,
    Identity,
    ObjectUploadResponse,
    ReceiptItem,
    ReceiptPage,
    RegisterRequest,
    RegisterResponse,
    TagView,
    WalletUpdateRequest,
)
from .rate_limit import RateLimiter
from .receipts import create_receipt, get_receipt, list_receipts
from .security import extract_client_id, validate_object_key
from .storage import ObjectStore, ObjectStoreError, get_object_store, get_public_url
from .tags import lookup_tag, register_tag, update_own_wallet

logger = logging.getLogger("moltr.api")

app = FastAPI(
    title="Moltr API",
    description=(
        "Agent-native crypto wallet and coordination layer. Tags (username -> wallet), "
        "Receipts (private proof records), Objects (token metadata/images). No custody."
    ),
    version=__version__,
    servers=[{"url": BASE_URL}],
    openapi_tags=[
        {"name": "Tags", "description": "Username -> wallet registry"},
        {"name": "Receipts", "description": "Private proof records"},
        {"name": "Objects", "description": "Token metadata/images upload"},
        {"name": "Health", "description": "Liveness and dependency checks"},
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in CORS_ORIGIN.split(",") if o.strip()],
    allow_methods=["GET", "POST", "PUT", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "x-api-key"],
)

limiter = RateLimiter(RATE_LIMIT_RPM)
STORE: Optional[ObjectStore] = None


@app.on_event("startup")
def _startup():
    global STORE
    configure_logging("DEBUG" if is_debug() else LOG_LEVEL, json_format=LOG_JSON, log_file=LOG_FILE)
    init_db()
    STORE = get_object_store()
    for name, ok in validate_config().items():
        if not ok:
            logger.warning("Configuration check failed: %s", name)
    if is_production() and STORE.backend != "s3":
        logger.warning("Object uploads are written to the local filesystem")


# ============================================================
# Middleware and error mapping
# ============================================================

@app.middleware("http")
async def request_context(request: Request, call_next):
    request_id = set_request_id(request.headers.get("x-request-id") or None)

    peer = request.client.host if request.client else None
    client_id = extract_client_id(request.headers, peer, TRUST_PROXY)
    result = limiter.check(client_id)
    if not result.allowed:
        audit_log.rate_limit_exceeded(client_id, request.url.path)
        err = RateLimited(retry_after=result.retry_after or 0)
        return JSONResponse(
            status_code=err.status_code,
            content=err.to_dict(),
            headers={"Retry-After": str(int(err.retry_after) + 1), "X-Request-ID": request_id},
        )

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(MoltrError)
async def _moltr_error(request: Request, exc: MoltrError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def _request_validation_error(request: Request, exc: RequestValidationError):
    # Only location and message; submitted values are not echoed back
    errors = [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]
    err = ValidationFailed("Validation failed", errors)
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


@app.exception_handler(sqlite3.Error)
async def _store_error(request: Request, exc: sqlite3.Error):
    logger.error("Store failure on %s: %s", request.url.path, type(exc).__name__)
    err = StoreUnavailable("Store unavailable")
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


# ============================================================
# Tags
# ============================================================

tags_router = APIRouter(prefix="/api/v1/tags", tags=["Tags"])


@tags_router.post("/register", status_code=201, response_model=RegisterResponse)
def register(req: RegisterRequest):
    """Create a tag and return its API key. The key is shown only once."""
    return register_tag(req.username, req.walletAddress)


@tags_router.patch("/me", response_model=TagView)
def update_me(req: WalletUpdateRequest, identity: Identity = Depends(require_identity)):
    return update_own_wallet(identity, req.walletAddress)


@tags_router.get("/{username}", response_model=TagView)
def get_tag(username: str):
    """Lookup by exact username. There is no search or listing."""
    return lookup_tag(username)


# ============================================================
# Receipts
# ============================================================

receipts_router = APIRouter(prefix="/api/v1/receipts", tags=["Receipts"])


@receipts_router.post("/create", status_code=201, response_model=CreateReceiptResponse)
def create(req: CreateReceiptRequest, identity: Identity = Depends(require_identity)):
    """Create a private proof record. Only the fromTag or toTag API key may create."""
    return create_receipt(
        identity,
        signature=req.signature,
        memo=req.memo,
        from_username=req.fromTag,
        to_username=req.toTag,
        amount=req.amount,
    )


@receipts_router.get("", response_model=ReceiptPage, response_model_exclude_none=True)
@receipts_router.get("/", response_model=ReceiptPage, response_model_exclude_none=True, include_in_schema=False)
def list_mine(
    identity: Identity = Depends(require_identity),
    limit: Optional[str] = Query(None, description="Max items (default 20, max 100)"),
    cursor: Optional[str] = Query(None, description="Receipt id for next page"),
):
    return list_receipts(identity, limit=limit, cursor=cursor)


@receipts_router.get("/{receipt_id}", response_model=ReceiptItem)
def get_one(receipt_id: str, identity: Identity = Depends(require_identity)):
    """Fetch a single receipt. Answers 404 unless the API key is fromTag or toTag."""
    return get_receipt(identity, receipt_id)


app.include_router(tags_router)
app.include_router(receipts_router)


# ============================================================
# Objects
# ============================================================

@app.put("/objects/{key:path}", tags=["Objects"], response_model=ObjectUploadResponse)
async def put_object(key: str, request: Request):
    """Upload token metadata/images. Public write, restricted keys, max 2MB."""
    try:
        key = validate_object_key(key)
    except ValidationFailed:
        audit_log.security_event("object_key_rejected", severity="low", endpoint=request.url.path)
        raise

    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > MAX_OBJECT_BYTES:
        raise PayloadTooLarge("Payload too large (max 2MB)")

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > MAX_OBJECT_BYTES:
            raise PayloadTooLarge("Payload too large (max 2MB)")
    if not body:
        raise ValidationFailed("Empty body not allowed")

    content_type = request.headers.get("content-type") or "application/octet-stream"
    try:
        await run_in_threadpool(STORE.put_object, key, bytes(body), content_type)
    except ObjectStoreError as e:
        audit_log.object_upload_failed(key, str(e))
        raise UpstreamFailure("Upload failed") from e

    audit_log.object_uploaded(key, len(body), content_type)
    return {"ok": True, "publicUrl": get_public_url(key)}


# ============================================================
# Health
# ============================================================

@app.get("/health", tags=["Health"], response_model=HealthStatus)
def health():
    """Returns 200 if DB (and S3 when configured) are reachable."""
    status, body = health_status(STORE)
    return JSONResponse(status_code=status, content=body)
