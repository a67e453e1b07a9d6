from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from ..core.errors import PipelineError
from ..core.logging import setup_logging
from .routers import health, jobs, scans

logger = setup_logging()
app = FastAPI(title="docscan")

# Status codes by error category; extraction problems are the caller's data
_CATEGORY_STATUS = {
    "permission": 403,
    "transient": 503,
    "cancelled": 409,
    "permanent": 502,
}


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError):
    status_code = 422 if exc.stage == "extract" else _CATEGORY_STATUS.get(exc.category, 500)
    logger.error("Pipeline error", path=request.url.path, stage=exc.stage, category=exc.category, error=exc.message)
    return JSONResponse(status_code=status_code, content={"detail": exc.to_dict()})


app.include_router(health.router)
app.include_router(jobs.router)
app.include_router(scans.router)
