"""
Local development server.

Wraps the Lambda handler in a FastAPI app so the transformation endpoint can
be exercised without a function URL:

    uvicorn image_transform.main:app --reload

Every request is turned into a function-URL (payload v2) event and the
handler's result dict is turned back into an HTTP response.
"""
import base64
import logging

from fastapi import FastAPI, Request
from fastapi.responses import Response
from pydantic import BaseModel

from image_transform.config import Settings
from image_transform.handler import ImageTransformHandler, ImageStore
from image_transform.storage import S3ImageStore

logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s: %(message)s")

_ROUTE_METHODS = ["GET", "HEAD", "OPTIONS", "POST", "PUT", "PATCH", "DELETE"]


# ── Health schema ─────────────────────────────────────────────────────────────

class HealthResponse(BaseModel):
    status: str
    service: str


# ── Event translation ─────────────────────────────────────────────────────────

def build_event(request: Request) -> dict:
    return {
        "version": "2.0",
        "rawPath": request.url.path,
        "rawQueryString": request.url.query,
        "headers": dict(request.headers),
        "requestContext": {
            "http": {
                "method": request.method,
                "path": request.url.path,
                "sourceIp": request.client.host if request.client else "",
                "userAgent": request.headers.get("user-agent", ""),
            },
        },
    }


def to_response(result: dict) -> Response:
    body = result.get("body") or ""
    content = base64.b64decode(body) if result.get("isBase64Encoded") else body.encode()
    headers = dict(result.get("headers") or {})
    media_type = headers.pop("Content-Type", None)
    return Response(
        content=content,
        status_code=int(result["statusCode"]),
        headers=headers,
        media_type=media_type,
    )


# ── App factory ───────────────────────────────────────────────────────────────

def get_settings() -> Settings:
    return Settings()


def create_app(settings: Settings | None = None, store: ImageStore | None = None) -> FastAPI:
    settings = settings or get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())
    transform = ImageTransformHandler(settings, store or S3ImageStore())

    app = FastAPI(
        title="Image Transform Service",
        version="1.0.0",
        description="On-demand resize and re-encode of stored images.",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", service="image-transform")

    @app.api_route("/{path:path}", methods=_ROUTE_METHODS, include_in_schema=False)
    def transform_image(request: Request) -> Response:
        return to_response(transform(build_event(request)))

    return app


app = create_app()
