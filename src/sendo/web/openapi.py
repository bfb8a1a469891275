from typing import Any

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi
from pydantic import BaseModel, Field


def set_custom_openapi(app: FastAPI) -> None:
    def custom_openapi() -> dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        openapi_schema = get_openapi(
            title="Sendo API",
            version="0.1.0",
            summary="Ephemeral code-paired file hand-off between a receiver and a sender",
            routes=app.routes,
        )

        # Role tokens travel as query/body parameters, not as a global auth scheme
        openapi_schema["tags"] = [
            {"name": "sessions", "description": "Session lifecycle: create, join, status, heartbeat, disconnect"},
            {"name": "files", "description": "Single-file upload and one-time download"},
            {"name": "health", "description": "Liveness probe"},
        ]

        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi  # type: ignore[method-assign]


class ErrorResponse(BaseModel):
    """Standard error response format."""

    message: str = Field(..., description="Human-readable error message")
    type: str = Field(..., description="Machine-readable error type")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"message": "Session not found", "type": "not_found"},
                {"message": "Unauthorized", "type": "unauthorized"},
                {"message": "Session expired or closed", "type": "expired"},
            ]
        }
    }
