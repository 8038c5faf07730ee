"""
Optional inference backends for vision_kit.

Each backend wraps one loaded model as a callable handle: float32 NCHW blob in,
primary output array out. Backends are kept in a separate module so the pre/post
processing code stays importable without any inference runtime installed.
"""

from __future__ import annotations

__all__ = []
