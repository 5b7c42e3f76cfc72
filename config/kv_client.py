# config/kv_client.py
from typing import Optional
import httpx
from config.settings import settings

_client: Optional[httpx.AsyncClient] = None


async def get_kv_client() -> httpx.AsyncClient:
    """Process-wide HTTP client for the hosted key-value endpoints."""
    global _client
    if _client is None:
        _client = httpx.AsyncClient(
            base_url=settings.KV_BASE_URL,
            timeout=httpx.Timeout(settings.KV_TIMEOUT_SECONDS, connect=5.0),
            headers={"content-type": "application/json"},
        )
    return _client


async def close_kv_client() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
