# FastRMSDs/src/fastrmsds/utils/__init__.py
from .io import load_trajectory, format_matrix, write_matrix, read_matrix
from .options import OptionsForwarder
from .plotting import frame_ticks, style_heatmap
from .ranges import parse_range_list, resolve_frame_indices

__all__ = [
    "load_trajectory",
    "format_matrix",
    "write_matrix",
    "read_matrix",
    "OptionsForwarder",
    "frame_ticks",
    "style_heatmap",
    "parse_range_list",
    "resolve_frame_indices",
]
