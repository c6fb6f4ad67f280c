import os
import shutil
import logging

from dotenv import load_dotenv

# Module-level config in the pipeline reads the environment at import time
load_dotenv()

import uvicorn
from fastapi import FastAPI
from contextlib import asynccontextmanager

from . import metrics
from . import run_limiter
from .pipeline import workflow_router
from .pipeline.render import FFMPEG_BINARY

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Worker starting up...")
    metrics.mark_started()
    if shutil.which(FFMPEG_BINARY) is None:
        logger.warning(f"ffmpeg binary '{FFMPEG_BINARY}' not found on PATH; renders will fail")
    yield
    logger.info("Worker shutting down...")


app = FastAPI(lifespan=lifespan)
app.include_router(workflow_router)


@app.get("/health")
def health_check():
    """Verify worker is running and the encoder is reachable."""
    return {
        "status": "ok",
        "ffmpeg_binary": FFMPEG_BINARY,
        "ffmpeg_available": shutil.which(FFMPEG_BINARY) is not None,
        "active_runs": run_limiter.get_active_runs(),
        "max_concurrent_runs": run_limiter.MAX_CONCURRENT_RUNS,
    }


@app.get("/metrics")
def metrics_endpoint():
    """Return a snapshot of all worker metrics."""
    metrics.set_active_runs(run_limiter.get_active_runs())
    return metrics.get_snapshot()


def main():
    port = int(os.environ.get("PORT", 8080))
    uvicorn.run("slideshow_worker.main:app", host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
