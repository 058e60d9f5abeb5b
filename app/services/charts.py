"""S-curve (cumulative progress) chart built with plotly."""
from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple

import plotly.graph_objects as go

LINE_COLOR = "#3b82f6"
FILL_COLOR = "rgba(59, 130, 246, 0.2)"
SERIES_LABEL = "Project Progress (%)"

# Placeholder series shown until per-project progress is tracked in the database.
DEFAULT_PROGRESS: List[Tuple[str, float]] = [
    ("Jan", 10),
    ("Feb", 30),
    ("Mar", 50),
    ("Apr", 70),
    ("May", 90),
]


def cumulative_series(increments: Iterable[Tuple[str, float]]) -> List[Tuple[str, float]]:
    """Turn per-period progress increments into a cumulative series clamped to 0..100."""
    total = 0.0
    series = []
    for label, value in increments:
        total = min(100.0, max(0.0, total + float(value)))
        series.append((label, round(total, 2)))
    return series


def build_s_curve(series: Sequence[Tuple[str, float]] = DEFAULT_PROGRESS) -> go.Figure:
    labels = [label for label, _ in series]
    values = [value for _, value in series]
    fig = go.Figure(
        go.Scatter(
            x=labels,
            y=values,
            name=SERIES_LABEL,
            mode="lines+markers",
            line={"color": LINE_COLOR, "shape": "spline"},
            fill="tozeroy",
            fillcolor=FILL_COLOR,
        )
    )
    fig.update_layout(
        showlegend=True,
        margin={"l": 40, "r": 20, "t": 20, "b": 40},
        yaxis={"title": SERIES_LABEL, "range": [0, 100]},
        autosize=True,
    )
    return fig


def render_s_curve(series: Sequence[Tuple[str, float]] = DEFAULT_PROGRESS) -> str:
    return build_s_curve(series).to_html(full_html=False, include_plotlyjs="cdn", default_height="100%")
