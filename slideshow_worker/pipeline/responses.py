"""
Helpers shared by the storage and publishing steps.
"""

from typing import Any

import httpx


TRANSPORT_FAILURE_STATUS = 502


def safe_json(response: httpx.Response) -> Any:
    """Parse a JSON body; an unparsable body becomes an error dict instead of raising."""
    try:
        return response.json()
    except ValueError as e:
        return {"error": "Failed to parse response body", "detail": str(e)}


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
