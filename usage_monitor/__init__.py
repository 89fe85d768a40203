"""
Usage Monitor.

Analyzes local CLI usage logs into session windows, burn rates and
token limit estimates.
"""

__version__ = "0.1.0"
