"""
Cookie Consent - FastAPI Application
Consent API endpoint, client configuration and consent statistics
"""

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Any, Optional
import json
import structlog

from .banner import CookieBanner
from .config import BannerConfig, get_banner_config
from .constants import SERVICE_NAME, SERVICE_VERSION
from .consent.models import RequestContext
from .events.audit import ConsentAuditLog
from .events.dispatcher import EventDispatcher
from .exceptions import ConfigurationError, StorageError
from .storage.base import ConsentStorage
from .storage.factory import build_storage
from .storage.sql import SqlConsentStorage
from .utils.network import detect_client_ip

# Configure structured logging
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
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

# Services shared across requests; tests and hosts may inject their own
banner_config: Optional[BannerConfig] = None
consent_storage: Optional[ConsentStorage] = None
event_dispatcher: Optional[EventDispatcher] = None
audit_log: Optional[ConsentAuditLog] = None


def init_services() -> None:
    """Create whichever shared services have not been provided yet"""
    global banner_config, consent_storage, event_dispatcher, audit_log

    if banner_config is None:
        banner_config = get_banner_config()
    if event_dispatcher is None:
        event_dispatcher = EventDispatcher()
    if audit_log is None:
        audit_log = ConsentAuditLog(banner_config.audit_max_entries).attach(event_dispatcher)
    if consent_storage is None:
        consent_storage = build_storage(banner_config)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting Cookie Consent service", version=SERVICE_VERSION)

    try:
        init_services()
        logger.info("Consent services initialized successfully")
    except ConfigurationError as e:
        logger.error("Failed to initialize consent services", error=e.message, details=e.details)

    yield

    if isinstance(consent_storage, SqlConsentStorage):
        consent_storage.close()
    logger.info("Shutting down Cookie Consent service")


# Create FastAPI app
app = FastAPI(
    title="Cookie Consent",
    description="Cookie consent state, storage and script gating",
    version=SERVICE_VERSION,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    logger.error("Consent storage failure", error_code=exc.error_code, details=exc.details)
    return JSONResponse(status_code=500, content={"success": False, **exc.to_dict()})


def context_from_request(request: Request) -> RequestContext:
    """Collect the request facts the consent core needs"""
    remote_addr = request.client.host if request.client else None
    return RequestContext(
        ip_address=detect_client_ip(request.headers, remote_addr),
        user_agent=request.headers.get("user-agent", ""),
        page_url=str(request.url),
        referrer=request.headers.get("referer", ""),
        do_not_track=request.headers.get("dnt") == "1",
        cookies=dict(request.cookies),
        server_name=request.url.hostname or "localhost",
    )


def banner_for_request(request: Request) -> CookieBanner:
    """Per-request banner over the shared storage and dispatcher"""
    if consent_storage is None or event_dispatcher is None:
        try:
            init_services()
        except ConfigurationError as e:
            logger.error("Consent services unavailable", error=e.message)
            raise HTTPException(status_code=503, detail="Consent storage not available")

    return CookieBanner(
        config=banner_config,
        storage=consent_storage,
        context=context_from_request(request),
        events=event_dispatcher,
    )


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "storage_mode": banner_config.storage_mode.value if banner_config else None,
        "components": {
            "consent_storage": consent_storage is not None,
            "event_dispatcher": event_dispatcher is not None,
            "audit_log": audit_log is not None,
        },
    }


@app.post("/consent")
async def consent_api(request: Request):
    """Consent API endpoint used by the client agent"""
    body = await request.body()
    try:
        payload: Any = json.loads(body) if body else None
    except (ValueError, RecursionError):
        payload = None

    banner = banner_for_request(request)
    result = banner.handle_api_request(payload)
    if result.get("success"):
        logger.info("Consent API action handled",
                    action=payload.get("action"),
                    consent_id=(banner.consent.consent_id if banner.consent else None))
    return result


@app.get("/consent/config")
async def consent_config(request: Request):
    """Configuration for the visitor-side agent"""
    banner = banner_for_request(request)
    return banner.javascript_config()


@app.get("/consent/statistics")
async def consent_statistics(days: int = 30):
    """Aggregate consent counts; only available with SQL storage"""
    if not isinstance(consent_storage, SqlConsentStorage):
        raise HTTPException(status_code=503, detail="Consent statistics require SQL storage")

    return consent_storage.statistics(days)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
