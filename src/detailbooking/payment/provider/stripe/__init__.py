"""Stripe provider package."""

from .api import Provider

__all__ = ["Provider"]
