"""
SDK for Usage Monitor.

Provides programmatic, cached access to usage analysis.
"""

from .data_manager import UsageDataManager

__all__ = ["UsageDataManager"]
