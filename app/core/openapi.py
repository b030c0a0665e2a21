"""OpenAPI customization utilities.

Provides a helper to enrich the generated OpenAPI schema with:
- Tags metadata
- The shared ``ErrorResponse`` schema
- A documented ``429`` response on every operation, since the rate limit
  middleware runs in front of all routes

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from app.schemas.errors import ErrorResponse

_HTTP_METHODS = {"get", "put", "post", "delete", "patch", "options", "head", "trace"}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and the 429 response."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        components = schema.setdefault("components", {})
        schemas = components.setdefault("schemas", {})
        schemas.setdefault(
            "ErrorResponse",
            ErrorResponse.model_json_schema(ref_template="#/components/schemas/{model}"),
        )

        # Tags metadata
        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {
                "name": "Health",
                "description": "Liveness and readiness checks.",
            },
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        too_many_requests = {
            "description": "Rate limit exceeded for this client.",
            "headers": {
                "Retry-After": {
                    "description": "Seconds until a new request may succeed.",
                    "schema": {"type": "integer"},
                },
            },
            "content": {
                "application/json": {
                    "schema": {"$ref": "#/components/schemas/ErrorResponse"},
                },
            },
        }
        for methods in schema.get("paths", {}).values():
            for method, operation in methods.items():
                if method in _HTTP_METHODS and isinstance(operation, dict):
                    operation.setdefault("responses", {}).setdefault("429", too_many_requests)

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
