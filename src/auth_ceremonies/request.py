"""Request metadata handed to the orchestrators by the HTTP collaborator."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True)
class CeremonyRequest:
    """Per-request context of a ceremony step.

    Attributes:
        session_id: Identifier of the browser session carrying ceremony state.
        ip_address: Client IP address (already resolved from proxies).
        user_id: Fully authenticated owner id, if the session has one.
        user_agent: Client user agent string.
        expects_json: Whether the caller wants JSON instead of redirects.
        intended_url: Where to send the user after authenticating.
        created_at: When the request context was created.
    """

    session_id: str
    ip_address: str = "0.0.0.0"
    user_id: str | None = None
    user_agent: str | None = None
    expects_json: bool = False
    intended_url: str = "/"
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


__all__: list[str] = ["CeremonyRequest"]
