"""
Step 4: Distribution to Facebook, Instagram and TikTok.

Each target goes through `decide` first, a pure function with three outcomes:
  SKIP: target disabled, no result recorded (None)
  REJECT: enabled but unsatisfiable, failed result with status 400, no network call
  PROCEED: run the platform protocol

Targets are attempted in a fixed order and isolated from one another: an
exception inside one becomes that target's failed result.
"""

import logging
from typing import Awaitable, Callable, NamedTuple, Optional

import httpx

from . import facebook, instagram, tiktok
from .errors import PublishError
from .models import (
    TARGET_ORDER,
    PlatformConfig,
    PlatformResult,
    PublishAction,
    PublishContext,
    PublishDecision,
    Target,
    WorkflowRequest,
)
from .responses import TRANSPORT_FAILURE_STATUS

logger = logging.getLogger(__name__)

LOCAL_REJECT_STATUS = 400
UNEXPECTED_FAILURE_STATUS = 500
MISSING_PUBLIC_URL = "Missing public video URL"

Publisher = Callable[[httpx.AsyncClient, PlatformConfig, PublishContext], Awaitable[PlatformResult]]


class TargetRules(NamedTuple):
    label: str
    needs_identifier: bool
    needs_public_link: bool
    missing_config: str
    publish: Publisher


TARGET_RULES: dict[Target, TargetRules] = {
    Target.FACEBOOK: TargetRules(
        label="Facebook",
        needs_identifier=True,
        needs_public_link=False,
        missing_config="Missing page access token or page ID",
        publish=facebook.publish_video,
    ),
    Target.INSTAGRAM: TargetRules(
        label="Instagram",
        needs_identifier=True,
        needs_public_link=True,
        missing_config="Missing access token or Instagram user ID",
        publish=instagram.publish_reel,
    ),
    Target.TIKTOK: TargetRules(
        label="TikTok",
        needs_identifier=False,
        needs_public_link=True,
        missing_config="Missing TikTok access token",
        publish=tiktok.publish_video,
    ),
}


def decide(target: Target, config: PlatformConfig, public_link: Optional[str]) -> PublishDecision:
    """Gate a target on its enable flag, its own config, then the public link."""
    rules = TARGET_RULES[target]

    if not config.enabled:
        return PublishDecision(action=PublishAction.SKIP)

    if not config.access_token or (rules.needs_identifier and not config.identifier):
        return PublishDecision(action=PublishAction.REJECT, reason=rules.missing_config)

    if rules.needs_public_link and not public_link:
        return PublishDecision(action=PublishAction.REJECT, reason=MISSING_PUBLIC_URL)

    return PublishDecision(action=PublishAction.PROCEED)


def _rejected(reason: str) -> PlatformResult:
    return PlatformResult(
        success=False,
        status_code=LOCAL_REJECT_STATUS,
        body={"error": reason},
        message=reason,
    )


async def publish_target(
    client: httpx.AsyncClient,
    target: Target,
    config: PlatformConfig,
    ctx: PublishContext,
) -> Optional[PlatformResult]:
    rules = TARGET_RULES[target]
    decision = decide(target, config, ctx.public_link)

    if decision.action == PublishAction.SKIP:
        ctx.run_log.append(f"{rules.label} publishing skipped.")
        return None

    if decision.action == PublishAction.REJECT:
        if decision.reason == MISSING_PUBLIC_URL:
            ctx.run_log.append(
                f"{rules.label} requires a public video URL. Google Drive upload must succeed first."
            )
        else:
            ctx.run_log.append(f"{rules.label} configuration incomplete: {decision.reason}.")
        return _rejected(decision.reason)

    try:
        result = await rules.publish(client, config, ctx)
    except PublishError as e:
        logger.error(f"{rules.label} publish error: {e}")
        result = PlatformResult(
            success=False,
            status_code=TRANSPORT_FAILURE_STATUS,
            body={"error": str(e)},
            message=str(e),
        )
    except Exception as e:
        logger.error(f"{rules.label} publish crashed: {e}", exc_info=True)
        result = PlatformResult(
            success=False,
            status_code=UNEXPECTED_FAILURE_STATUS,
            body={"error": str(e)},
            message=f"Unexpected {rules.label} error: {e}",
        )

    outcome = "succeeded" if result.success else "failed"
    ctx.run_log.append(f"{rules.label} publishing {outcome} (HTTP {result.status_code}).")
    return result


async def distribute(
    client: httpx.AsyncClient,
    request: WorkflowRequest,
    ctx: PublishContext,
) -> dict[Target, Optional[PlatformResult]]:
    """Attempt every target in order; all three keys are always present."""
    results: dict[Target, Optional[PlatformResult]] = {}
    for target in TARGET_ORDER:
        results[target] = await publish_target(client, target, request.platform(target), ctx)
    return results
