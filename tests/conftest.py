from typing import Callable, List, Tuple

import pytest

from delta_viewer.config import ViewerConfig


class RecordingTypesetter:
    """Stands in for the LaTeX typesetter: returns a readable tag and records every call."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, bool]] = []

    def __call__(self, source: str, display_mode: bool) -> str:
        self.calls.append((source, display_mode))
        return f"[{'D' if display_mode else 'I'}:{source}]"


@pytest.fixture
def typesetter() -> RecordingTypesetter:
    return RecordingTypesetter()


@pytest.fixture
def failing_typesetter() -> Callable[[str, bool], str]:
    def typeset(source: str, display_mode: bool) -> str:
        raise RuntimeError(f"cannot typeset {source}")

    return typeset


@pytest.fixture
def config() -> ViewerConfig:
    return ViewerConfig()
