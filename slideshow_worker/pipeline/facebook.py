"""
Facebook Page video publishing (Graph API).

The only target that takes the raw video bytes, so it does not depend on
the Google Drive step.
"""

import os
import json
import logging

import httpx

from .errors import PublishError
from .models import PlatformConfig, PlatformResult, PublishContext
from .responses import safe_json

logger = logging.getLogger(__name__)

# ── Config ───────────────────────────────────────────────────────────────────

GRAPH_API_VERSION = os.getenv("GRAPH_API_VERSION", "v18.0")
GRAPH_API_BASE = f"https://graph.facebook.com/{GRAPH_API_VERSION}"


def call_to_action(link: str) -> str:
    return json.dumps({"type": "LEARN_MORE", "value": {"link": link}})


async def publish_video(
    client: httpx.AsyncClient,
    config: PlatformConfig,
    ctx: PublishContext,
) -> PlatformResult:
    """
    POST /{page_id}/videos with the video as multipart `source`.

    config.identifier is the page id; config.extra_field, when set, becomes a
    LEARN_MORE call-to-action link.
    """
    form = {
        "title": ctx.title,
        "description": ctx.text,
    }
    if config.extra_field:
        form["call_to_action"] = call_to_action(config.extra_field)

    files = {"source": (ctx.artifact.file_name, ctx.artifact.data, ctx.artifact.mime_type)}

    ctx.run_log.append("Posting video to Facebook Page.")
    try:
        response = await client.post(
            f"{GRAPH_API_BASE}/{config.identifier}/videos",
            params={"access_token": config.access_token},
            data=form,
            files=files,
        )
    except httpx.HTTPError as e:
        raise PublishError("facebook", f"Facebook request failed: {e}") from e

    logger.info(f"Facebook /videos → HTTP {response.status_code}")
    return PlatformResult(
        success=response.is_success,
        status_code=response.status_code,
        body=safe_json(response),
    )
