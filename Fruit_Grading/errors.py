from __future__ import annotations

from typing import Iterable

from vision_kit.letterbox import InvalidInput as _ImageInputError


class GradingError(Exception):
    """Base class for every error raised by the grading layer."""


class ConfigurationError(GradingError, RuntimeError):
    def __init__(self, message: str, *, missing_roles: Iterable[str] = ()):
        super().__init__(message)
        self.missing_roles = tuple(missing_roles)


class InvalidInput(GradingError, _ImageInputError):
    """
    Zero-size or malformed image, or a region of interest with no area after clipping.

    Also an instance of `vision_kit.InvalidInput` (and therefore ValueError).
    """


class ModelInvocationFailure(GradingError, RuntimeError):
    def __init__(self, role: str, message: str):
        super().__init__(f"{role} model failed: {message}")
        self.role = role


class ModelTimeout(ModelInvocationFailure):
    def __init__(self, role: str, timeout_s: float):
        super().__init__(role, f"no result within {timeout_s:g}s")
        self.timeout_s = timeout_s


class AnalysisCancelled(GradingError):
    pass
