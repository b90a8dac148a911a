"""Vehicle registry collaborators."""

from .base import StaticRegistry, VehicleRegistry
from .dvla import DvlaRegistry

__all__ = ["DvlaRegistry", "StaticRegistry", "VehicleRegistry"]
