"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: runtime/__init__.py.
"""

from .coalescing import RequestCoalescer
from .timeouts import await_with_timeout, wait_or_cancelled

__all__ = ["RequestCoalescer", "await_with_timeout", "wait_or_cancelled"]
