from __future__ import annotations
from pathlib import Path
import numpy as np
from typing import Optional, Union

from ..utils.io import write_matrix


class AnalysisError(Exception):
    pass


class InputError(AnalysisError):
    """Bad run input: zero-atom selection, mismatched frame sizes, unreadable frames."""


class NumericalError(AnalysisError):
    """The 3x3 decomposition failed. ``code`` follows the LAPACK ``info`` convention."""

    def __init__(self, message: str, code: int = 0):
        super().__init__(f"{message} (code={code})")
        self.code = int(code)


class RunCancelled(AnalysisError):
    pass


class CacheMemoryWarning(ResourceWarning):
    """Estimated coordinate cache size exceeds the configured share of physical memory."""


class BaseAnalysis:
    def __init__(self, source, output=None, **kwargs):
        self.source = source
        self.output = output or self.__class__.__name__.replace("Analysis", "").lower() + "_output"
        # created on first save so console-only runs leave no directory behind
        self.outdir = Path(self.output)
        self.results = {}
        self.data = None

    def _save_plot(
        self,
        fig,
        name: str,
        *,
        filename: Optional[Union[str, Path]] = None,
        dpi: Optional[int] = None,
    ) -> Path:
        """
        Save a matplotlib figure to a PNG file in the output directory.

        Parameters
        ----------
        fig : matplotlib.figure.Figure
        name : str
            Base name used when 'filename' is not provided.
        filename : str | Path | None
            Optional explicit filename or path. If relative and without suffix,
            '.png' is appended and it is placed under self.outdir.
        dpi : int | None
            Optional DPI override.

        Returns
        -------
        Path
        """
        self.outdir.mkdir(parents=True, exist_ok=True)

        if filename is not None:
            p = Path(filename)
            if not p.suffix:
                p = p.with_suffix(".png")
            if not p.is_absolute():
                p = self.outdir / p
            p.parent.mkdir(parents=True, exist_ok=True)
            out = p
        else:
            out = self.outdir / f"{name}.png"

        save_kwargs = {"bbox_inches": "tight"}
        if dpi is not None:
            save_kwargs["dpi"] = dpi

        fig.savefig(out, **save_kwargs)
        return out

    def _save_data(
        self,
        data,
        filename: str,
        header: str | None = None,
        precision: int = 2,
        suffix: str = ".asc",
    ) -> Path:
        """
        Write a matrix in the fixed-precision text layout (see ``utils.io.format_matrix``).
        Non-array payloads are written with ``str()``.
        """
        data_path = self.outdir / f"{filename}{suffix}"
        if isinstance(data, np.ndarray):
            write_matrix(data, data_path, precision=precision, header=header)
        else:
            data_path.write_text(str(data))
        return data_path

    def run(self):
        raise NotImplementedError("Subclasses must implement the run() method.")

    def plot(self):
        raise NotImplementedError("Subclasses must implement the plot() method.")
