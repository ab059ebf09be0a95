from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
import traceback
from typing import Awaitable, Callable, Optional

from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from pyinstrument import Profiler

from paytag.config.settings import Settings
from paytag.domain.models import B2BPassthroughRequest, C2BPassthroughRequest, ProxyRequest
from paytag.domain.proxy import MpesaPassthrough, ProxyForwarder

logger = logging.getLogger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_app(
    settings: Settings,
    forwarder: ProxyForwarder,
    passthrough: MpesaPassthrough,
    on_shutdown: Optional[Callable[[], Awaitable[None]]] = None,
) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Paytag relay starting (environment: {settings.node_env})")
        logger.info(f"CORS enabled for: {', '.join(settings.cors_origins)}")

        yield

        if on_shutdown is not None:
            await on_shutdown()
        logger.info("Paytag relay stopped")

    app = FastAPI(lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        allow_credentials=True,
    )

    # Global exception handlers
    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unexpected error in {request.method} {request.url.path}: {str(exc)}")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "detail": "An unexpected error occurred"}
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error in {request.method} {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=400,
            content=jsonable_encoder({"error": "Validation error", "detail": exc.errors()})
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        logger.warning(f"HTTP error in {request.method} {request.url.path}: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail}
        )

    if settings.enable_profiling:
        @app.middleware("http")
        async def profile_request(request: Request, call_next):
            profiling = request.query_params.get("profile", False)
            if profiling:
                profiler = Profiler(interval=0.0001)
                profiler.start()
                await call_next(request)
                profiler.stop()
                return HTMLResponse(profiler.output_html())
            else:
                return await call_next(request)

    def proxy_failure(exc: Exception) -> JSONResponse:
        content = {"error": "Proxy request failed", "message": str(exc)}
        if settings.is_development:
            content["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return JSONResponse(status_code=500, content=content)

    @app.get("/")
    async def root():
        return {
            "status": "ok",
            "message": "Paytag Proxy Server running successfully",
            "timestamp": _timestamp(),
            "endpoints": {
                "health": "/health",
                "getSession": "/getSession",
                "c2bPayment": "/c2bPayment",
                "b2bPayment": "/b2bPayment",
                "mpesaProxy": "/mpesa-proxy",
            },
        }

    @app.get("/health")
    async def health_check():
        """Liveness probe target for the relay client."""
        return {
            "status": "ok",
            "message": "Proxy server is running",
            "timestamp": _timestamp(),
        }

    @app.post("/mpesa-proxy")
    async def mpesa_proxy(proxy_request: ProxyRequest):
        if not proxy_request.url:
            logger.error("No URL provided in proxy request")
            raise HTTPException(status_code=400, detail="URL is required")

        try:
            forwarded = await forwarder.forward(
                proxy_request.url,
                method=proxy_request.method,
                headers=proxy_request.headers,
                body=proxy_request.body,
            )
        except Exception as e:
            logger.error(f"Proxy request to {proxy_request.url} failed: {str(e)}")
            return proxy_failure(e)

        return JSONResponse(status_code=forwarded.status_code, content=forwarded.payload)

    @app.get("/mpesa-proxy")
    async def mpesa_proxy_get(request: Request):
        params = dict(request.query_params)
        url = params.pop("url", None)
        if not url:
            raise HTTPException(status_code=400, detail="URL is required")

        try:
            forwarded = await forwarder.forward(url, method="GET", headers=params)
        except Exception as e:
            logger.error(f"Proxy GET request to {url} failed: {str(e)}")
            return proxy_failure(e)

        return JSONResponse(status_code=forwarded.status_code, content=forwarded.payload)

    @app.post("/getSession")
    async def get_session():
        try:
            return await passthrough.get_session()
        except Exception as e:
            logger.error(f"getSession error: {str(e)}")
            raise HTTPException(status_code=500, detail="Failed to get M-Pesa session token")

    @app.post("/c2bPayment")
    async def c2b_payment(payment_request: C2BPassthroughRequest):
        try:
            return await passthrough.c2b_payment(
                payment_request.amount, payment_request.msisdn, payment_request.reference
            )
        except Exception as e:
            logger.error(f"C2B Payment Error: {str(e)}")
            raise HTTPException(status_code=500, detail="Payment request failed")

    @app.post("/b2bPayment")
    async def b2b_payment(payment_request: B2BPassthroughRequest):
        try:
            return await passthrough.b2b_payment(
                payment_request.amount, payment_request.receiverShortcode, payment_request.reference
            )
        except Exception as e:
            logger.error(f"B2B Payment Error: {str(e)}")
            raise HTTPException(status_code=500, detail="B2B Payment request failed")

    return app
