# main.py

import json
from typing import List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from delta_viewer.app_logic import RenderOutcome, render_delta_text
from delta_viewer.delta_compiler import summarize
from delta_viewer.delta_validation import SAMPLE_DELTAS, format_delta_json, get_sample_delta, validate_delta
from delta_viewer.logger import get_logger

logger = get_logger("delta_viewer.api")


class DeltaTextRequest(BaseModel):
    text: str


class ValidateResponse(BaseModel):
    is_valid: bool
    error: Optional[str] = None
    op_count: int = 0


class FormatResponse(BaseModel):
    text: str


app = FastAPI(
    title="Delta Viewer API",
    description="Validates Quill Delta JSON and renders it to a render tree and an HTML preview.",
    version="1.0.0",
)

origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def read_root():
    """
    Root path, used to check that the API is up.

    Returns:
        dict: A welcome message.
    """
    return {"message": "Delta Viewer API is running."}


@app.post("/validate", response_model=ValidateResponse)
def validate_endpoint(request: DeltaTextRequest):
    """
    Checks a Delta JSON buffer. Invalid input is not an HTTP error: the viewer displays the message.
    """
    result = validate_delta(request.text)
    return ValidateResponse(
        is_valid=result.is_valid,
        error=result.error_message,
        op_count=summarize(result.delta).op_count,
    )


@app.post("/format", response_model=FormatResponse)
def format_endpoint(request: DeltaTextRequest):
    """Pretty-prints the buffer; text that does not parse is returned unchanged."""
    if not request.text.strip():
        raise HTTPException(status_code=400, detail="Text cannot be empty.")
    return FormatResponse(text=format_delta_json(request.text))


@app.post("/render", response_model=RenderOutcome)
def render_endpoint(request: DeltaTextRequest):
    """
    Validates, compiles and renders a Delta JSON buffer.

    Args:
        request (DeltaTextRequest): Request body holding the raw `text`.

    Returns:
        RenderOutcome: Render nodes, HTML preview, status summary and the pipeline log.
    """
    return render_delta_text(request.text)


@app.get("/samples", response_model=List[str])
def list_samples_endpoint():
    return list(SAMPLE_DELTAS)


@app.get("/samples/{name}", response_model=FormatResponse)
def sample_endpoint(name: str):
    """Returns one sample document as formatted JSON text, ready to load into the input editor."""
    sample = get_sample_delta(name)
    if sample is None:
        logger.warning("[API] Unknown sample requested: %s", name)
        raise HTTPException(status_code=404, detail=f"Unknown sample '{name}'.")
    return FormatResponse(text=json.dumps(sample, indent=2, ensure_ascii=False))
