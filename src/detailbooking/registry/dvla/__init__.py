"""DVLA Vehicle Enquiry Service registry."""

from .api import DvlaRegistry

__all__ = ["DvlaRegistry"]
