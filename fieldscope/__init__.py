"""Fieldscope package.

Avoid importing stage modules at package import time so that logger
configuration only happens when a stage is actually used.
"""

__all__: list[str] = []
