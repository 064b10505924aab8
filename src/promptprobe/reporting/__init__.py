from __future__ import annotations

from .search import render_search, select_matches  # noqa: F401
from .summary import render_summary  # noqa: F401

__all__: list[str] = [
    "render_search",
    "render_summary",
    "select_matches",
]
