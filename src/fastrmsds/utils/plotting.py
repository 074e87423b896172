# FastRMSDs/src/fastrmsds/utils/plotting.py
from __future__ import annotations

from typing import Optional, Union

import numpy as np
from matplotlib.axes import Axes
from matplotlib.ticker import FixedLocator

__all__ = ["frame_ticks", "style_heatmap"]


def _nice_step(span: float, max_ticks: int) -> int:
    if span <= 0 or not np.isfinite(span):
        return 1
    raw = span / max(1, max_ticks - 1)
    magnitude = 10 ** np.floor(np.log10(raw)) if raw > 0 else 1.0
    residual = raw / magnitude
    if residual <= 1.5:
        nice = 1.0
    elif residual <= 3:
        nice = 2.0
    elif residual <= 7:
        nice = 5.0
    else:
        nice = 10.0
    return max(1, int(round(nice * magnitude)))


def frame_ticks(n: int, *, max_ticks: int = 8) -> np.ndarray:
    """Integer tick positions in [0, n-1] at a 1/2/5 step, at most ~max_ticks of them."""
    if n <= 0:
        return np.zeros(0, dtype=float)
    step = _nice_step(float(n - 1), max_ticks)
    return np.arange(0, n, step, dtype=float)


def _adaptive_font_size(count: int, *, max_size: float = 28.0, min_size: float = 14.0) -> float:
    if count <= 0:
        return max_size
    size = max_size / np.sqrt(max(1.0, count / 2.0))
    return float(np.clip(size, min_size, max_size))


def style_heatmap(
    ax: Axes,
    n_rows: int,
    n_cols: int,
    *,
    max_ticks: int = 8,
    tick_size: Optional[Union[int, float]] = None,
    label_size: Optional[Union[int, float]] = None,
) -> dict:
    """
    Frame-index ticks on both axes and slide-readable font sizes.

    Returns the applied tick arrays as {"x": ..., "y": ...}.
    """
    ticks_x = frame_ticks(n_cols, max_ticks=max_ticks)
    ticks_y = frame_ticks(n_rows, max_ticks=max_ticks)
    ax.xaxis.set_major_locator(FixedLocator(ticks_x))
    ax.yaxis.set_major_locator(FixedLocator(ticks_y))

    count = max(len(ticks_x), len(ticks_y))
    ts = float(tick_size) if tick_size is not None else _adaptive_font_size(count)
    ls = float(label_size) if label_size is not None else max(ts * 1.25, 18.0)

    ax.tick_params(axis="both", which="major", labelsize=ts)
    ax.xaxis.label.set_fontsize(ls)
    ax.yaxis.label.set_fontsize(ls)
    ax.title.set_fontsize(max(ls * 1.1, ax.title.get_fontsize()))
    return {"x": ticks_x, "y": ticks_y}
