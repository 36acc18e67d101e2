from netlayout.layout.engine import LayoutEngine
from netlayout.layout.kamada_kawai import KamadaKawai
from netlayout.layout.levels import (
    assign_levels_leaves,
    assign_levels_roots,
    has_cycles,
    invert_levels,
)

__all__ = [
    "KamadaKawai",
    "LayoutEngine",
    "assign_levels_leaves",
    "assign_levels_roots",
    "has_cycles",
    "invert_levels",
]
