"""
TikTok upload by URL (single call). Needs the Google Drive public link.
"""

import logging

import httpx

from .errors import PublishError
from .models import PlatformConfig, PlatformResult, PublishContext
from .responses import bearer, safe_json

logger = logging.getLogger(__name__)

TIKTOK_UPLOAD_URL = "https://open.tiktokapis.com/v2/video/upload/"


async def publish_video(
    client: httpx.AsyncClient,
    config: PlatformConfig,
    ctx: PublishContext,
) -> PlatformResult:
    payload = {
        "video_url": ctx.public_link,
        "text": ctx.text,
    }
    # An upload started elsewhere can be continued by id
    upload_id = config.session_id or config.identifier
    if upload_id:
        payload["upload_id"] = upload_id

    ctx.run_log.append("Calling TikTok upload API.")
    try:
        response = await client.post(
            TIKTOK_UPLOAD_URL,
            headers=bearer(config.access_token),
            json=payload,
        )
    except httpx.HTTPError as e:
        raise PublishError("tiktok", f"TikTok request failed: {e}") from e

    logger.info(f"TikTok upload → HTTP {response.status_code}")
    return PlatformResult(
        success=response.is_success,
        status_code=response.status_code,
        body=safe_json(response),
    )
