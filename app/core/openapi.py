"""OpenAPI customization.

Adds tags metadata and documents the 429 response that every guarded
operation can return, keeping documentation out of the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_GUARDED_PATHS = ("/v1/auth/login", "/v1/forms/submit")

_RATE_LIMITED_RESPONSE = {
    "description": "Too many attempts from this client; retry after the time in the message.",
    "headers": {
        "Retry-After": {
            "description": "Seconds until the block ends.",
            "schema": {"type": "integer"},
        },
    },
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation with tags and 429 responses."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {"name": "Auth", "description": "Admin login, guarded per client."},
            {"name": "Forms", "description": "Public contact form, guarded per client."},
            {"name": "Health", "description": "Liveness check and guard statistics."},
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            if path not in _GUARDED_PATHS:
                continue
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    method_obj.setdefault("responses", {})["429"] = _RATE_LIMITED_RESPONSE

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
