"""
Storage layer for Usage Monitor.

Read-only access to the usage log tree and the data model built from it.
"""
