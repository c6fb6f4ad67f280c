"""
Request defaults and report serialisation.
"""
import pytest

from slideshow_worker.pipeline.models import (
    PlatformConfig,
    PlatformResult,
    RunReport,
    Target,
    WorkflowRequest,
)


@pytest.mark.parametrize("raw", [0, -3, "0", "-1.5", "abc", "", None, "nan", "inf", 1e-320, "1e-320"])
def test_invalid_frame_duration_falls_back_to_default(raw):
    req = WorkflowRequest(prompt="p", frame_duration_seconds=raw)
    assert req.frame_duration_seconds == 2.0


@pytest.mark.parametrize("raw,expected", [("3", 3.0), (0.5, 0.5), ("12.25", 12.25)])
def test_valid_frame_duration_is_kept(raw, expected):
    assert WorkflowRequest(prompt="p", frame_duration_seconds=raw).frame_duration_seconds == expected


def test_title_defaults_to_truncated_prompt():
    req = WorkflowRequest(prompt="  " + "x" * 150 + "  ")
    assert req.prompt == "x" * 150
    assert req.title == "x" * 100


def test_title_defaults_when_prompt_blank():
    assert WorkflowRequest(prompt="").title == "Generated Video"


def test_explicit_title_is_kept():
    assert WorkflowRequest(prompt="p", title=" Launch ").title == "Launch"


def test_missing_platform_config_is_disabled():
    req = WorkflowRequest(prompt="p", platforms={Target.TIKTOK: PlatformConfig(enabled=True)})
    assert req.platform(Target.TIKTOK).enabled
    assert not req.platform(Target.FACEBOOK).enabled


def test_completed_report_uses_camel_case_and_null_targets():
    report = RunReport(
        run_id="r1",
        logs=["a"],
        video_base64="AAAA",
        mime_type="video/mp4",
        instagram=PlatformResult(success=False, status_code=400, body={"error": "x"}, message="x"),
    )
    payload = report.to_response()

    assert payload["videoBase64"] == "AAAA"
    assert payload["mimeType"] == "video/mp4"
    assert payload["facebook"] is None
    assert payload["tiktok"] is None
    assert payload["instagram"]["statusCode"] == 400
    assert "error" not in payload


def test_aborted_report_only_carries_error_and_logs():
    report = RunReport(run_id="r1", logs=["x"], error="boom", error_code="ENCODE_ERROR")
    assert report.aborted
    assert report.to_response() == {"error": "boom", "logs": ["x"]}
