"""
WorkflowService: runs one request through the whole pipeline.

Stages, strictly in order:
  1. Frame normalisation (PIL → PNG sequence)
  2. Video assembly (ffmpeg → MP4)
  3. Google Drive upload (optional, produces the public link)
  4. Distribution: Facebook, Instagram, TikTok

Stages 1-2 are fatal: any error aborts the run and no video is returned.
Stages 3-4 never abort: failures become result records in the report.
The temporary workspace is removed on every path.
"""

import os
import time
import uuid
import base64
import asyncio
import logging
from contextlib import contextmanager
from typing import Optional

import httpx

from .. import metrics
from .distribute import UNEXPECTED_FAILURE_STATUS, distribute
from .errors import InputError, WorkflowError
from .frames import normalize_frames
from .models import (
    TARGET_ORDER,
    PlatformResult,
    PublishContext,
    RunReport,
    StorageUploadResult,
    Target,
    VideoArtifact,
    WorkflowRequest,
)
from .render import RENDER_TIMEOUT_SECONDS, artifact_file_name, render_video
from .run_log import RunLog, run_workspace
from .storage import upload_to_drive

logger = logging.getLogger(__name__)

# ── Config ───────────────────────────────────────────────────────────────────

HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "60"))


class WorkflowService:
    """
    Pipeline orchestrator.

    Usage:
        service = WorkflowService()
        report = await service.run(request)
        if report.aborted:
            ...  # report.error, report.logs
    """

    def __init__(
        self,
        work_root: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        http_timeout: float = HTTP_TIMEOUT_SECONDS,
        render_timeout: float = RENDER_TIMEOUT_SECONDS,
    ):
        self.work_root = work_root
        self.transport = transport
        self.http_timeout = http_timeout
        self.render_timeout = render_timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.http_timeout, transport=self.transport)

    @contextmanager
    def _timed(self, stage: str):
        start = time.perf_counter()
        try:
            yield
        finally:
            metrics.stage_timing(stage, (time.perf_counter() - start) * 1000)

    @staticmethod
    def _validate(request: WorkflowRequest):
        if not request.prompt:
            raise InputError("Prompt is required")
        if not request.images:
            raise InputError("At least one image is required")

    # ── Stage 3 ──────────────────────────────────────────────────────────

    async def _store(
        self,
        client: httpx.AsyncClient,
        request: WorkflowRequest,
        artifact: VideoArtifact,
        run_log: RunLog,
    ) -> Optional[StorageUploadResult]:
        if not request.storage or not request.storage.access_token:
            run_log.append("Google Drive step skipped (no token provided).")
            metrics.storage_outcome(None)
            return None

        run_log.append("Uploading rendered video to Google Drive.")
        with self._timed("storage"):
            try:
                result = await upload_to_drive(client, artifact, request.storage)
            except Exception as e:
                logger.error(f"[{run_log.run_id}] Drive upload crashed: {e}", exc_info=True)
                result = StorageUploadResult(
                    success=False,
                    status_code=UNEXPECTED_FAILURE_STATUS,
                    body={"error": str(e)},
                    message=f"Unexpected Google Drive error: {e}",
                )

        if result.success:
            run_log.append(f"Google Drive upload succeeded (fileId: {result.file_id}).")
        else:
            detail = f": {result.message}" if result.message else ""
            run_log.append(f"Google Drive upload failed (HTTP {result.status_code}){detail}")
        metrics.storage_outcome(result.success)
        return result

    # ── Run ──────────────────────────────────────────────────────────────

    async def run(self, request: WorkflowRequest) -> RunReport:
        """
        Execute the pipeline for one request.

        Returns:
            RunReport. `report.aborted` is True when no video was produced;
            otherwise the report carries the video and every stage/target outcome.
        """
        run_id = uuid.uuid4().hex[:12]
        run_log = RunLog(run_id)
        report = RunReport(run_id=run_id)
        stage = "validate"
        started = time.perf_counter()
        metrics.run_started()

        try:
            self._validate(request)
            run_log.append(f"Received {len(request.images)} image(s), preparing frame pipeline.")

            with run_workspace(self.work_root) as workspace:
                # ── Step 1: Frames ───────────────────────────────────
                stage = "normalize"
                with self._timed(stage):
                    frames = await asyncio.to_thread(
                        normalize_frames, request.images, workspace / "frames"
                    )
                run_log.append("Frames normalised to PNG and stored in temporary workspace.")

                # ── Step 2: Render ───────────────────────────────────
                stage = "render"
                run_log.append("Invoking FFmpeg to stitch frames into a timeline.")
                with self._timed(stage):
                    artifact = await render_video(
                        frames,
                        request.frame_duration_seconds,
                        workspace,
                        artifact_file_name(request.title),
                        timeout=self.render_timeout,
                    )
                run_log.append(
                    f"Video render complete ({artifact.frame_count} frame(s), "
                    f"{artifact.nominal_duration_seconds:g}s)."
                )

            # ── Steps 3/4: Storage + distribution ────────────────────
            stage = "publish"
            async with self._client() as client:
                storage_result = await self._store(client, request, artifact, run_log)
                public_link = storage_result.public_link if storage_result and storage_result.success else None

                ctx = PublishContext(
                    artifact=artifact,
                    title=request.title,
                    caption=request.caption,
                    public_link=public_link,
                    run_log=run_log,
                )
                with self._timed("distribute"):
                    results = await distribute(client, request, ctx)

            self._fill_report(report, artifact, storage_result, results)
            run_log.append("Workflow completed.")
            metrics.run_completed()

        except WorkflowError as e:
            self._abort(report, run_log, stage, e.code, str(e))
        except Exception as e:
            logger.error(f"[{run_id}] Unexpected failure during {stage}: {e}", exc_info=True)
            self._abort(report, run_log, stage, "UNEXPECTED_ERROR", str(e) or "Unexpected error")
        finally:
            metrics.stage_timing("run", (time.perf_counter() - started) * 1000)
            report.logs = run_log.lines

        return report

    @staticmethod
    def _fill_report(
        report: RunReport,
        artifact: VideoArtifact,
        storage_result: Optional[StorageUploadResult],
        results: dict[Target, Optional[PlatformResult]],
    ):
        report.video_base64 = base64.b64encode(artifact.data).decode("ascii")
        report.mime_type = artifact.mime_type
        report.video_duration_seconds = artifact.nominal_duration_seconds
        if storage_result is not None:
            report.google_drive = storage_result
            report.google_drive_file_id = storage_result.file_id
            report.google_drive_web_link = storage_result.public_link

        for target in TARGET_ORDER:
            result = results.get(target)
            setattr(report, target.value, result)
            metrics.publish_outcome(target.value, None if result is None else result.success)

    @staticmethod
    def _abort(report: RunReport, run_log: RunLog, stage: str, code: str, message: str):
        run_log.error(message)
        report.error = message
        report.error_code = code
        metrics.run_aborted(stage, code, message, run_id=report.run_id)
