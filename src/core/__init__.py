"""Core data structures for macro floorplanning."""
from .geometry import Rect
from .macro import HardMacro, SoftMacro, Macro, Orientation, Placeable
from .net import Net
from .floorplan import Floorplan

__all__ = [
    "Rect", "HardMacro", "SoftMacro", "Macro", "Orientation", "Placeable",
    "Net", "Floorplan",
]
