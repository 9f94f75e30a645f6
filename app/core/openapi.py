"""OpenAPI customization.

Advertises the admin password header as a security scheme and attaches it to
the /admin operations only; quota and health endpoints stay anonymous.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from app.core.auth import ADMIN_PASSWORD_HEADER

TAGS_METADATA = [
    {"name": "Quota", "description": "Per-visitor voice call quota."},
    {"name": "Admin", "description": "Exempt-address management and quota resets."},
    {"name": "Health", "description": "Liveness and readiness checks."},
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and the admin scheme."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        security_schemes = schema.setdefault("components", {}).setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "AdminPassword",
            {
                "type": "apiKey",
                "in": "header",
                "name": ADMIN_PASSWORD_HEADER,
                "description": "Shared admin secret configured via ADMIN_PASSWORD.",
            },
        )

        tags = schema.setdefault("tags", [])
        known = {t.get("name") for t in tags}
        tags.extend(tag for tag in TAGS_METADATA if tag["name"] not in known)

        for path, methods in schema.get("paths", {}).items():
            if "/admin/" not in path:
                continue
            for operation in methods.values():
                if isinstance(operation, dict):
                    operation["security"] = [{"AdminPassword": []}]

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
