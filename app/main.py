import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.api import analysis
from app.services.occurrence_service import OccurrenceSourceError

logger = logging.getLogger(__name__)

app = FastAPI(title="Bloaty Trigger Analysis", version="0.1.0")


@app.exception_handler(OccurrenceSourceError)
async def occurrence_source_exception_handler(request: Request, exc: OccurrenceSourceError):
    """The food and symptom logs could not be read; the run is abandoned."""
    logger.error("Occurrence source failure on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Occurrence data is temporarily unavailable"},
    )


# Include routers
app.include_router(analysis.router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
