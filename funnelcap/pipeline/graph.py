"""Build and compile the clone pipeline StateGraph.

The graph topology is:

    START → capturer ─┬─(identical)──────────────→ reconstructor → END
                      └─(rewrite)→ rewriter ─┐          ↑
                                     ↑       │          │
                                     └─(more)┴─(done)───┘
"""

from __future__ import annotations

import sqlite3
import threading
from typing import Any, Optional

from langgraph.checkpoint.memory import MemorySaver
from langgraph.graph import END, START, StateGraph

from funnelcap.pipeline.nodes import (
    SourceCapture,
    make_capturer,
    make_reconstructor,
    make_rewriter,
)
from funnelcap.pipeline.state import CloneState


def build_graph(
    conn: sqlite3.Connection,
    capture: Optional[SourceCapture] = None,
    llm: Any = None,
    cancel_event: Optional[threading.Event] = None,
):
    """Compile and return the clone ``StateGraph``.

    Args:
        conn: Open, initialised DB connection captured by every node closure.
        capture: Source capture override (tests); defaults to a live browser.
        llm: Chat model override (tests); defaults to ``settings.llm_provider``.
        cancel_event: Cooperative cancel flag checked between nodes.
    """
    graph = StateGraph(CloneState)

    graph.add_node("capturer", make_capturer(conn, capture, cancel_event))
    graph.add_node("rewriter", make_rewriter(conn, llm, cancel_event))
    graph.add_node("reconstructor", make_reconstructor(conn))

    graph.add_edge(START, "capturer")

    def _route_batches(state: CloneState) -> str:
        """Keep rewriting while unsent units remain, then reconstruct."""
        return "rewriter" if state.get("has_more") else "reconstructor"

    graph.add_conditional_edges("capturer", _route_batches)
    graph.add_conditional_edges("rewriter", _route_batches)
    graph.add_edge("reconstructor", END)

    return graph.compile(checkpointer=MemorySaver())
