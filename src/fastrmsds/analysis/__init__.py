"""Pair-wise RMSD analysis: frame sources, coordinate cache, kernel, builder, progress."""
