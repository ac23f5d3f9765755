"""Shared configuration package for the estimate import service."""

from .shared_settings import SharedSettings, shared_settings

__all__ = ["SharedSettings", "shared_settings"]
