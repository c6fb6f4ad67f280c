"""
Step 3 (optional): Google Drive upload.

Two calls, no retries:
  1. multipart create  → file id
  2. permissions POST  → anyone-with-link reader

Only when both succeed does the run get a public link, which the
Instagram and TikTok steps depend on.
"""

import json
import logging

import httpx

from .errors import UploadError
from .models import StorageCredentials, StorageUploadResult, VideoArtifact
from .responses import TRANSPORT_FAILURE_STATUS, bearer, safe_json

logger = logging.getLogger(__name__)

# ── Config ───────────────────────────────────────────────────────────────────

DRIVE_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files"
DRIVE_FILES_URL = "https://www.googleapis.com/drive/v3/files"
DRIVE_PUBLIC_LINK = "https://drive.google.com/uc?export=download&id={file_id}"


def public_link(file_id: str) -> str:
    return DRIVE_PUBLIC_LINK.format(file_id=file_id)


async def _create_file(
    client: httpx.AsyncClient,
    artifact: VideoArtifact,
    credentials: StorageCredentials,
) -> httpx.Response:
    metadata: dict = {
        "name": artifact.file_name,
        "mimeType": artifact.mime_type,
    }
    if credentials.folder_id:
        metadata["parents"] = [credentials.folder_id]

    files = {
        "metadata": (None, json.dumps(metadata).encode("utf-8"), "application/json"),
        "file": (artifact.file_name, artifact.data, artifact.mime_type),
    }
    try:
        return await client.post(
            DRIVE_UPLOAD_URL,
            params={"uploadType": "multipart"},
            headers=bearer(credentials.access_token),
            files=files,
        )
    except httpx.HTTPError as e:
        raise UploadError(f"Google Drive upload request failed: {e}", details={"call": "create"}) from e


async def _grant_public_read(
    client: httpx.AsyncClient,
    file_id: str,
    access_token: str,
) -> httpx.Response:
    try:
        return await client.post(
            f"{DRIVE_FILES_URL}/{file_id}/permissions",
            headers=bearer(access_token),
            json={"role": "reader", "type": "anyone"},
        )
    except httpx.HTTPError as e:
        raise UploadError(
            f"Google Drive permission request failed: {e}",
            details={"call": "permission", "file_id": file_id},
        ) from e


async def upload_to_drive(
    client: httpx.AsyncClient,
    artifact: VideoArtifact,
    credentials: StorageCredentials,
) -> StorageUploadResult:
    """
    Upload the artifact and make it publicly readable.

    Never raises for remote failures; they come back as success=False with the
    status code and raw bodies of whichever calls were made.
    """
    try:
        upload_resp = await _create_file(client, artifact, credentials)
        upload_body = safe_json(upload_resp)

        if not upload_resp.is_success:
            logger.warning(f"Drive create failed: HTTP {upload_resp.status_code}")
            return StorageUploadResult(
                success=False,
                status_code=upload_resp.status_code,
                body={"upload": upload_body},
                message="Google Drive upload failed.",
            )

        file_id = upload_body.get("id") if isinstance(upload_body, dict) else None
        if not file_id:
            logger.warning(f"Drive create returned no file id: {upload_body}")
            return StorageUploadResult(
                success=False,
                status_code=upload_resp.status_code,
                body={"upload": upload_body, "error": "Upload response missing file identifier."},
                message="Upload response missing file identifier.",
            )
        file_id = str(file_id)

        permission_resp = await _grant_public_read(client, file_id, credentials.access_token)
        permission_body = safe_json(permission_resp)
        body = {"upload": upload_body, "permission": permission_body}

        if not permission_resp.is_success:
            logger.warning(f"Drive permission grant failed for {file_id}: HTTP {permission_resp.status_code}")
            return StorageUploadResult(
                success=False,
                status_code=permission_resp.status_code,
                file_id=file_id,
                body=body,
                message="Failed to make the uploaded file public.",
            )

        logger.info(f"Drive upload complete: {file_id}")
        return StorageUploadResult(
            success=True,
            status_code=upload_resp.status_code,
            file_id=file_id,
            public_link=public_link(file_id),
            body=body,
        )

    except UploadError as e:
        logger.error(f"{e}")
        return StorageUploadResult(
            success=False,
            status_code=TRANSPORT_FAILURE_STATUS,
            file_id=e.details.get("file_id"),
            body={"error": str(e), **e.details},
            message=str(e),
        )
