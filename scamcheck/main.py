"""FastAPI entry point. Wires offline check -> remote classifier -> history
pipeline. Exposes GET / (health), POST /analyze and the history endpoints."""

import json
import logging
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Request, Body
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from scamcheck import __version__
from scamcheck.analyzer import AnalysisUnavailable, message_analyzer
from scamcheck.models import (
    AnalysisResult,
    AnalyzeRequest,
    HistoryEntry,
    Statistics,
    Verdict,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

SERVICE_NAME = "Scam Text Checker API"

app = FastAPI(
    title=SERVICE_NAME,
    description="Offline pattern scoring with remote AI classification for pasted text messages",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def _on_startup() -> None:
    logger.info(
        f"{SERVICE_NAME} v{__version__} started | "
        f"remote classifier={'on' if message_analyzer.classifier.is_configured else 'off'} | "
        f"history={message_analyzer.store.path}"
    )


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.error(f"422 VALIDATION ERROR | {request.url.path} | {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={"detail": _jsonable_errors(exc), "message": "Invalid request payload."},
    )


def _jsonable_errors(exc: RequestValidationError) -> list:
    """Validation errors may carry exception objects in ``ctx``."""
    return json.loads(json.dumps(exc.errors(), default=str))


@app.get("/")
async def health_check() -> dict:
    return {
        "status": "online",
        "service": SERVICE_NAME,
        "version": __version__,
    }


@app.post("/analyze", response_model=AnalysisResult)
def analyze(request: AnalyzeRequest) -> AnalysisResult:
    """Analyze a pasted message with the offline check and, if configured,
    the remote classifier."""
    logger.info(f"ANALYZE msg_len={len(request.message)}")
    try:
        return message_analyzer.analyze(request.message)
    except AnalysisUnavailable as exc:
        logger.error(f"Analysis failed: {exc}")
        raise HTTPException(status_code=503, detail=str(exc))


@app.post("/analyze/offline", response_model=Optional[Verdict])
def analyze_offline(request: AnalyzeRequest) -> Optional[Verdict]:
    """Pattern check only. ``null`` means no offline determination."""
    return message_analyzer.check_offline(request.message)


@app.get("/history", response_model=List[HistoryEntry])
def get_history() -> List[HistoryEntry]:
    return message_analyzer.store.get_scan_history()


@app.get("/history/export")
def export_history() -> dict:
    exported = message_analyzer.store.export_history()
    if exported is None:
        raise HTTPException(status_code=500, detail="Could not export history.")
    return json.loads(exported)


@app.post("/history/import")
def import_history(document: dict = Body(...)) -> dict:
    imported = message_analyzer.store.import_history(json.dumps(document))
    if imported is None:
        raise HTTPException(status_code=400, detail="Invalid import data format.")
    return {"imported": imported}


@app.delete("/history/{item_id}")
def delete_history_item(item_id: str) -> dict:
    return {"deleted": message_analyzer.store.delete_history_item(item_id)}


@app.delete("/history")
def clear_history() -> dict:
    return {"cleared": message_analyzer.store.clear_history()}


@app.get("/statistics", response_model=Statistics)
def statistics() -> Statistics:
    return message_analyzer.store.get_statistics()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
