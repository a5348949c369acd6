"""Anonymous access tokens and read access checks.

Anonymous quotations are reachable with a secret token handed out once at
placement. Only its SHA-256 hash is ever stored.
"""

import base64
import hashlib
import secrets
from datetime import UTC, datetime

from quotations.providers import Providers

READ_RESOURCE = "quotations"


def hash_token(token: str) -> str:
    return base64.b64encode(hashlib.sha256(token.encode("utf-8")).digest()).decode("ascii")


def create_anonymous_access_token() -> tuple[str, dict]:
    """Return ``(raw_token, stored_record)``; the raw token is never stored."""
    token = secrets.token_urlsafe(32)
    return token, {"hashed_token": hash_token(token), "created_at": datetime.now(UTC).isoformat()}


def token_grants_access(access_tokens: list[dict], token: str | None) -> bool:
    if not token:
        return False
    hashed = hash_token(token)
    return any(secrets.compare_digest(record["hashed_token"], hashed) for record in access_tokens)


def resource_for(quotation_id: str) -> str:
    return f"{READ_RESOURCE}:{quotation_id}"


def check_read_access(quotation, shop_id: str, providers: Providers, token: str | None = None) -> None:
    """Allow a matching anonymous token, else require ``read`` permission.

    The quotation's own account passes the permission check as owner.
    """
    if token_grants_access(quotation.access_tokens, token):
        return
    providers.permissions.validate(READ_RESOURCE, "read", shop_id=shop_id, owner_id=quotation.account_id)
