"""
FastAPI routes for the slideshow workflow.

Endpoints:
  POST /workflow   multipart form (images + publishing options → RunReport JSON)

Status codes:
  200: video produced (individual targets may still have failed)
  400: missing prompt / no images / unreadable form
  500: decode, encode or unexpected failure (error + logs)
  503: too many runs in flight
"""

import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.datastructures import FormData, UploadFile

from .. import metrics, run_limiter
from .models import (
    TARGET_ORDER,
    ImageAsset,
    PlatformConfig,
    StorageCredentials,
    Target,
    WorkflowRequest,
)
from .orchestrator import WorkflowService

logger = logging.getLogger(__name__)

IMAGE_FIELD_PREFIX = "image_"

workflow_router = APIRouter(prefix="/workflow", tags=["workflow"])

# Singleton service instance
_service = WorkflowService()


def get_service() -> WorkflowService:
    return _service


def set_service(service: WorkflowService):
    """Swap the service (tests point it at fake transports / temp dirs)."""
    global _service
    _service = service


# ── Form parsing ─────────────────────────────────────────────────────────────

def _text(form: FormData, name: str) -> str:
    value = form.get(name)
    return value.strip() if isinstance(value, str) else ""


def _platform_config(form: FormData, target: Target) -> PlatformConfig:
    key = target.value
    return PlatformConfig(
        enabled=_text(form, f"{key}Enabled") == "true",
        access_token=_text(form, f"{key}AccessToken"),
        identifier=_text(form, f"{key}Identifier"),
        extra_field=_text(form, f"{key}ExtraField"),
        session_id=_text(form, f"{key}SessionId"),
    )


async def build_request(form: FormData) -> WorkflowRequest:
    """Translate the multipart form into a WorkflowRequest."""
    images: list[ImageAsset] = []
    for name, value in form.multi_items():
        if name.startswith(IMAGE_FIELD_PREFIX) and isinstance(value, UploadFile):
            images.append(ImageAsset(
                field_name=name,
                filename=value.filename or "",
                data=await value.read(),
            ))

    drive_token = _text(form, "googleDriveToken")
    storage = None
    if drive_token:
        storage = StorageCredentials(
            access_token=drive_token,
            folder_id=_text(form, "googleDriveFolderId") or None,
        )

    return WorkflowRequest(
        prompt=_text(form, "prompt"),
        title=_text(form, "title"),
        caption=_text(form, "caption"),
        frame_duration_seconds=_text(form, "frameDuration"),
        images=images,
        storage=storage,
        platforms={target: _platform_config(form, target) for target in TARGET_ORDER},
    )


def _status_for(error_code: str) -> int:
    return 400 if error_code == "INPUT_ERROR" else 500


# ── Endpoint ─────────────────────────────────────────────────────────────────

@workflow_router.post("")
async def run_workflow(request: Request):
    """Render the uploaded images into a video and publish it."""
    metrics.count_request()

    if not run_limiter.acquire_run_slot():
        metrics.count_request("rejected_capacity")
        raise HTTPException(
            status_code=503,
            detail=f"Server at capacity ({run_limiter.MAX_CONCURRENT_RUNS} concurrent runs). Try again shortly.",
        )

    metrics.set_active_runs(run_limiter.get_active_runs())
    try:
        try:
            form = await request.form()
        except Exception as e:
            logger.warning(f"Unreadable workflow form: {e}")
            return JSONResponse({"error": f"Invalid form data: {e}", "logs": []}, status_code=400)

        try:
            workflow_request = await build_request(form)
        finally:
            await form.close()

        report = await get_service().run(workflow_request)
        if report.aborted:
            return JSONResponse(report.to_response(), status_code=_status_for(report.error_code))
        return JSONResponse(report.to_response())

    finally:
        run_limiter.release_run_slot()
        metrics.set_active_runs(run_limiter.get_active_runs())
