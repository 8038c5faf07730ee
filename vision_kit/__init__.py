"""
Lightweight, reusable model I/O helpers.

Framework-agnostic: works with NumPy arrays emitted by ONNX Runtime or PyTorch
tensors converted to NumPy. Letterboxing, tensor encoding, detection decoding
and classification ranking need nothing beyond NumPy and OpenCV.
"""

from .types import Box, ClassificationResult, Detection
from .letterbox import InvalidInput, LetterboxResult, letterbox, resize_square
from .tensor import encode_chw, to_blob
from .nms import NMSConfig, containment_nms
from .postprocess import DecodeConfig, DetectionDecoder, Geometry
from .classify import rank_classification, softmax
from .runtime import ModelHandle, SerializedHandle, ensure_thread_safe, find_project_root, load_model_handle, resolve_path
from .metadata import load_labels
from .visualize import draw_caption, draw_detections

__all__ = [
    "Box",
    "ClassificationResult",
    "Detection",
    "InvalidInput",
    "LetterboxResult",
    "letterbox",
    "resize_square",
    "encode_chw",
    "to_blob",
    "NMSConfig",
    "containment_nms",
    "DecodeConfig",
    "DetectionDecoder",
    "Geometry",
    "rank_classification",
    "softmax",
    "ModelHandle",
    "SerializedHandle",
    "ensure_thread_safe",
    "find_project_root",
    "load_model_handle",
    "resolve_path",
    "load_labels",
    "draw_caption",
    "draw_detections",
]
