# delta_viewer/app_logic.py
from typing import Callable, List, Optional

from pydantic import BaseModel, Field

from .config import ViewerConfig, get_config
from .delta_compiler import compile_delta, summarize
from .delta_validation import validate_delta
from .formula_processor import Typesetter
from .html_renderer import render_html
from .logger import get_logger
from .schemas import DeltaSummary, RenderNode

logger = get_logger(__name__)


class RenderOutcome(BaseModel):
    is_valid: bool
    error: Optional[str] = None
    nodes: List[RenderNode] = Field(default_factory=list)
    html: str = ""
    summary: DeltaSummary = Field(default_factory=DeltaSummary)
    log: str = ""


def render_delta_text(
        raw_text: str,
        log_callback: Optional[Callable[[str], None]] = None,
        typesetter: Optional[Typesetter] = None,
        config: Optional[ViewerConfig] = None
) -> RenderOutcome:
    """
    Runs the whole viewer pipeline on a raw text buffer: validate, compile, project to HTML.

    An invalid buffer still yields a renderable outcome (the "no content" placeholder)
    together with the validation error, mirroring what the preview pane shows.

    Args:
        raw_text (str): The Delta JSON text as typed or imported.
        log_callback (Optional[Callable[[str], None]]): Receives each log line as it is produced.
        typesetter (Optional[Typesetter]): Override of the formula typesetter.
        config (Optional[ViewerConfig]): Settings; defaults to the process configuration.

    Returns:
        RenderOutcome: Validity, error text, render nodes, HTML, status summary and the log stream.
    """
    config = config or get_config()
    log_stream = []

    def log(message: str):
        log_stream.append(message)
        logger.info(message)
        if log_callback:
            log_callback(message)

    log(f"[VALIDATE] Checking {len(raw_text or '')} characters of Delta JSON...")
    validation = validate_delta(raw_text)
    if not validation.is_valid:
        log(f"[VALIDATE] ❌ {validation.error_message}")
        nodes = compile_delta(None, config=config)
        return RenderOutcome(is_valid=False, error=validation.error_message, nodes=nodes,
                             html=render_html(nodes, config), summary=summarize(None), log="\n".join(log_stream))

    delta = validation.delta
    log(f"[VALIDATE] ✅ Valid Delta JSON ({len(delta.ops)} operations).")

    nodes = compile_delta(delta, typesetter=typesetter, config=config)
    log(f"[COMPILE] Produced {len(nodes)} render nodes.")

    html = render_html(nodes, config)
    log("[RENDER] HTML preview generated.")

    return RenderOutcome(is_valid=True, nodes=nodes, html=html, summary=summarize(delta),
                         log="\n".join(log_stream))
