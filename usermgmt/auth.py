"""API key authentication dependency."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from usermgmt.config import Settings, settings

_api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def get_settings() -> Settings:
    return settings


async def require_api_key(
    api_key: str | None = Security(_api_key_header),
    cfg: Settings = Depends(get_settings),
) -> str:
    """FastAPI dependency that enforces the X-API-Key header.

    Skipped when USERMGMT_API_KEY is blank.
    """
    if not cfg.api_key:
        return "no-key-configured"
    if api_key is None or api_key != cfg.api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )
    return api_key
