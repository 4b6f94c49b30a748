"""matplotlib rendering of floorplans and annealing runs."""
from .layout_viewer import LayoutViewer

__all__ = ["LayoutViewer"]
