"""
Core modules for Usage Monitor.

This package contains the usage analysis engine: record normalization,
pricing, session windowing, limit detection and capacity estimation.
"""
