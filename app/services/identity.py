"""Anonymous visitor identification.

Best-effort fingerprinting, not authentication: the address comes from
spoofable proxy headers and visitors sharing a gateway and a browser build
collide. It only has to be stable enough to meter a free demo.
"""

from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass
from typing import Mapping

from app.services.exemption_registry import ExemptionRegistry

EXEMPT_IDENTITY = "unlimited"
DEFAULT_ADDRESS = "127.0.0.1"
_SEPARATOR = "|"


@dataclass(frozen=True)
class ConnectionMetadata:
    """Request attributes the resolver is allowed to look at."""

    forwarded_for: str | None = None
    real_ip: str | None = None
    cdn_ip: str | None = None
    user_agent: str = ""
    accept_language: str = ""

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "ConnectionMetadata":
        """Build metadata from request headers (case-insensitive mapping)."""
        return cls(
            forwarded_for=headers.get("x-forwarded-for"),
            real_ip=headers.get("x-real-ip"),
            cdn_ip=headers.get("cf-connecting-ip"),
            user_agent=headers.get("user-agent") or "",
            accept_language=headers.get("accept-language") or "",
        )


def extract_client_address(metadata: ConnectionMetadata) -> str:
    """Pick the source address: X-Forwarded-For, X-Real-IP, CF-Connecting-IP, loopback."""
    candidates = (
        metadata.forwarded_for.split(",")[0] if metadata.forwarded_for else None,
        metadata.real_ip,
        metadata.cdn_ip,
    )
    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate.strip()
    return DEFAULT_ADDRESS


def fingerprint(address: str, user_agent: str = "", accept_language: str = "") -> str:
    """Encode address, client signature and locale into a 43-char opaque token."""
    raw = _SEPARATOR.join((address, user_agent, accept_language))
    digest = hashlib.sha256(raw.encode()).digest()
    return base64.urlsafe_b64encode(digest).decode().rstrip("=")


def fingerprint_metadata(metadata: ConnectionMetadata) -> str:
    """Fingerprint a request without the exemption short-circuit."""
    return fingerprint(
        extract_client_address(metadata), metadata.user_agent, metadata.accept_language
    )


class IdentityResolver:
    """Maps connection metadata to an identity, short-circuiting exempt addresses."""

    def __init__(self, registry: ExemptionRegistry) -> None:
        self._registry = registry

    def resolve(self, metadata: ConnectionMetadata) -> str:
        address = extract_client_address(metadata)
        if self._registry.is_exempt(address):
            return EXEMPT_IDENTITY
        return fingerprint(address, metadata.user_agent, metadata.accept_language)
