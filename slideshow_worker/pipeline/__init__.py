"""
Slideshow Workflow Pipeline

Turns uploaded images into one MP4 and distributes it:
  Frames → Video → Google Drive (optional public link) → Facebook / Instagram / TikTok
"""

from .orchestrator import WorkflowService
from .routes import workflow_router
from .models import RunReport, Target, WorkflowRequest

__all__ = [
    "WorkflowService",
    "workflow_router",
    "RunReport",
    "Target",
    "WorkflowRequest",
]
