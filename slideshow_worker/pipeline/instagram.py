"""
Instagram video publishing (Graph API, two phases).

  1. POST /{ig_user_id}/media          → container keyed by the public video URL
  2. POST /{ig_user_id}/media_publish  → publish that container

Needs the Google Drive public link.
"""

import logging
from typing import Optional

import httpx

from .errors import PublishError
from .facebook import GRAPH_API_BASE
from .models import PlatformConfig, PlatformResult, PublishContext
from .responses import safe_json

logger = logging.getLogger(__name__)


async def _post(client: httpx.AsyncClient, url: str, phase: str, **kwargs) -> httpx.Response:
    try:
        return await client.post(url, **kwargs)
    except httpx.HTTPError as e:
        raise PublishError("instagram", f"Instagram {phase} request failed: {e}") from e


def _creation_id(body) -> Optional[str]:
    if isinstance(body, dict) and body.get("id"):
        return str(body["id"])
    return None


async def publish_reel(
    client: httpx.AsyncClient,
    config: PlatformConfig,
    ctx: PublishContext,
) -> PlatformResult:
    """
    Create a VIDEO container from ctx.public_link and publish it.

    config.identifier is the Instagram user id; config.extra_field is an
    optional cover image URL. Both response bodies are kept in the result.
    """
    user_url = f"{GRAPH_API_BASE}/{config.identifier}"
    params = {
        "access_token": config.access_token,
        "caption": ctx.text,
        "media_type": "VIDEO",
        "video_url": ctx.public_link,
    }
    if config.extra_field:
        params["cover_url"] = config.extra_field

    ctx.run_log.append("Creating Instagram media container.")
    container_resp = await _post(client, f"{user_url}/media", "container", params=params)
    container_body = safe_json(container_resp)

    if not container_resp.is_success:
        ctx.run_log.append("Instagram container creation failed.")
        return PlatformResult(
            success=False,
            status_code=container_resp.status_code,
            body={"container": container_body},
            message="Instagram container creation failed.",
        )

    creation_id = _creation_id(container_body)
    if not creation_id:
        ctx.run_log.append("Instagram container response missing creation ID.")
        return PlatformResult(
            success=False,
            status_code=container_resp.status_code,
            body={"container": container_body},
            message="Missing Instagram creation ID.",
        )

    ctx.run_log.append("Publishing Instagram media container.")
    publish_resp = await _post(
        client,
        f"{user_url}/media_publish",
        "publish",
        data={"access_token": config.access_token, "creation_id": creation_id},
    )

    logger.info(f"Instagram container {creation_id} publish → HTTP {publish_resp.status_code}")
    return PlatformResult(
        success=publish_resp.is_success,
        status_code=publish_resp.status_code,
        body={
            "container": container_body,
            "publish": safe_json(publish_resp),
        },
    )
