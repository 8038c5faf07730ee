from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

import numpy as np


PathLike = Union[str, Path]

# Opaque inference function: (1, 3, N, N) float32 blob -> raw output array.
ModelHandle = Callable[[np.ndarray], np.ndarray]


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", "setup.py", ".git", "requirements.txt"),
) -> Path:
    """
    Best-effort project root discovery.

    Lets relative model paths like `models/detection.onnx` resolve the same way
    regardless of the working directory a script is launched from.
    """

    p = Path(start) if start is not None else Path.cwd()
    p = p.resolve()

    # If a file is provided, start from its directory.
    if p.is_file():
        p = p.parent

    for parent in (p, *p.parents):
        for m in markers:
            if (parent / m).exists():
                return parent
    return p


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    """
    Resolve `path` to an absolute Path.

    - Absolute paths are returned as-is.
    - Relative paths are resolved against:
      - `root` if provided
      - project root (auto) otherwise
    """

    p = Path(path)
    if p.is_absolute():
        return p

    if root == "auto" or root is None:
        base = find_project_root()
    else:
        base = Path(root).resolve()

    return (base / p).resolve()


class SerializedHandle:
    """
    Wrap a handle whose runtime does not allow concurrent calls.

    Each wrapped handle gets its own lock, so other handles stay independently concurrent.
    """

    def __init__(self, handle: ModelHandle):
        self._handle = handle
        self._lock = threading.Lock()
        self.thread_safe = True

    def __call__(self, blob: np.ndarray) -> np.ndarray:
        with self._lock:
            return self._handle(blob)


def ensure_thread_safe(handle: ModelHandle) -> ModelHandle:
    """
    Return `handle` unchanged when it declares `thread_safe = True`, else serialize it.

    Plain functions without the attribute are treated as safe (stateless callables).
    """
    if getattr(handle, "thread_safe", True):
        return handle
    return SerializedHandle(handle)


def load_model_handle(
    model_path: PathLike,
    *,
    backend: Optional[str] = None,
    root: Optional[PathLike] = "auto",
    onnx_providers: Optional[Sequence[str]] = None,
    onnx_input_name: Optional[str] = None,
    onnx_output_name: Optional[str] = None,
    torch_device: str = "cpu",
    torch_output_index: int = 0,
) -> ModelHandle:
    """
    Load a model file and return it as a thread-safe handle.

    Args:
        model_path: path to the model file; relative paths resolve against project root by default
        backend: "onnxruntime" / "torchscript", or None to infer from the extension
        root: base directory for resolving relative model paths ("auto" uses best-effort project root)
    """

    resolved = resolve_path(model_path, root=root)
    chosen = backend
    if chosen is None:
        suffix = resolved.suffix.lower()
        if suffix == ".onnx":
            chosen = "onnxruntime"
        elif suffix in {".torchscript", ".ts", ".pt"}:
            chosen = "torchscript"
        else:
            raise ValueError(
                f"Could not infer backend from extension '{suffix}'. Pass backend=... explicitly."
            )

    chosen = chosen.lower()
    if chosen == "onnxruntime":
        from .backends.onnxruntime_backend import OnnxModelHandle, OnnxRuntimeBackendConfig

        return ensure_thread_safe(
            OnnxModelHandle(
                resolved,
                OnnxRuntimeBackendConfig(
                    providers=onnx_providers,
                    input_name=onnx_input_name,
                    output_name=onnx_output_name,
                ),
            )
        )

    if chosen == "torchscript":
        from .backends.torchscript_backend import TorchScriptBackendConfig, TorchScriptModelHandle

        return ensure_thread_safe(
            TorchScriptModelHandle(
                resolved,
                TorchScriptBackendConfig(device=torch_device, output_index=torch_output_index),
            )
        )

    raise ValueError(f"Unsupported backend: {backend!r}")
