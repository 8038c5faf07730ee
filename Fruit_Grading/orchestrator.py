"""
Inference orchestrator: one image in, one PipelineResult out.

Flow per call:
    detection (whole image) -> ROI -> [ripeness | defect | variety] on the ROI crop -> decision + size

The three ROI passes run concurrently on the pipeline's thread pool and are all
joined before the result is assembled.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple, Union

import numpy as np

from vision_kit.classify import rank_classification
from vision_kit.letterbox import InvalidInput as ImageInputError
from vision_kit.letterbox import check_image, letterbox, resize_square
from vision_kit.postprocess import DecodeConfig, DetectionDecoder, Geometry
from vision_kit.runtime import ModelHandle, ensure_thread_safe, load_model_handle, resolve_path
from vision_kit.tensor import to_blob
from vision_kit.types import Box, Detection

from .config import MANDATORY_ROLES, ROLES, PipelineConfig
from .decision import decide, tally_defects
from .errors import AnalysisCancelled, ConfigurationError, InvalidInput, ModelInvocationFailure, ModelTimeout
from .result import PassTimings, PipelineResult, defect_area_ratio
from .size import estimate_size

logger = logging.getLogger(__name__)

DETECTION_STYLE_ROLES = ("detection", "defect")
ROI_ROLES = ("ripeness", "defect", "variety")

NOTE_DETECTION_FALLBACK = "detection_fallback_full_frame"
NOTE_ROI_SUPPLIED = "roi_supplied"
NOTE_VARIETY_UNAVAILABLE = "variety_model_unavailable"
NOTE_VARIETY_FAILED = "variety_model_failed"
NOTE_VARIETY_TIMEOUT = "variety_model_timeout"

# How often a blocked join wakes up to look at the cancel token.
_POLL_S = 0.05


class GradingPipeline:
    """
    Parameterized grading pipeline.

    Args:
        config: PipelineConfig (see `Fruit_Grading.config.PRESETS`)
        handles: model role -> ModelHandle, or None when the model is unavailable.
            detection / ripeness / defect are mandatory, variety is optional.
    """

    def __init__(self, config: PipelineConfig, handles: Mapping[str, Optional[ModelHandle]]):
        unknown = sorted(set(handles) - set(ROLES))
        if unknown:
            raise ConfigurationError(f"Unknown model roles: {unknown}. Expected a subset of {list(ROLES)}")
        missing = [role for role in MANDATORY_ROLES if handles.get(role) is None]
        if missing:
            raise ConfigurationError(f"Missing mandatory model handles: {missing}", missing_roles=missing)

        self.config = config
        self._handles: Dict[str, ModelHandle] = {}
        for role, handle in handles.items():
            if handle is None:
                continue
            if config.spec_for(role) is None:
                logger.warning("Ignoring %s handle: config %r has no %s model", role, config.name, role)
                continue
            self._handles[role] = ensure_thread_safe(handle)

        self._decoders = {
            role: DetectionDecoder(
                DecodeConfig(
                    conf_threshold=config.spec_for(role).conf_threshold,
                    overlap_threshold=config.overlap_threshold,
                    max_detections=config.max_detections,
                )
            )
            for role in DETECTION_STYLE_ROLES
        }
        self._executor = ThreadPoolExecutor(max_workers=config.max_workers, thread_name_prefix="grading")
        self._closed = False
        logger.info(
            "Built grading pipeline %r (roles: %s, timeout: %s)",
            config.name,
            ", ".join(sorted(self._handles)),
            "off" if config.model_timeout_s is None else f"{config.model_timeout_s:g}s",
        )

    @property
    def has_variety(self) -> bool:
        return "variety" in self._handles

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=True, cancel_futures=True)

    def __enter__(self) -> "GradingPipeline":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Analysis
    # ------------------------------------------------------------------ #
    def analyze(
        self,
        image: np.ndarray,
        *,
        roi: Optional[Box] = None,
        cancel: Optional[threading.Event] = None,
    ) -> PipelineResult:
        """
        Grade one RGB image.

        Args:
            image: (H, W, 3) uint8 RGB array; only read, never modified
            roi: skip the detection pass and grade this region instead
            cancel: set from another thread to abandon the call (AnalysisCancelled)

        Raises:
            InvalidInput, ModelInvocationFailure (ModelTimeout), AnalysisCancelled
        """
        if self._closed:
            raise RuntimeError("GradingPipeline is closed")
        t_start = time.perf_counter()
        try:
            width, height = check_image(image)
        except ImageInputError as exc:
            raise InvalidInput(str(exc)) from exc

        notes: List[str] = []
        detection_ms = 0.0
        _check_cancel(cancel)

        if roi is None:
            det_starts: Dict[str, float] = {}
            results = self._join(
                {"detection": self._submit("detection", image, (0, 0), det_starts)}, det_starts, cancel
            )
            detections, detection_ms = self._mandatory(results, "detection")
            roi_det = self._pick_roi(detections)
            detection_succeeded = roi_det is not None
            if roi_det is None:
                logger.warning("No target fruit detected; grading the full frame")
                notes.append(NOTE_DETECTION_FALLBACK)
                roi_det = Detection(label="", confidence=0.0, box=Box(0.0, 0.0, float(width), float(height)))
        else:
            detection_succeeded = False
            notes.append(NOTE_ROI_SUPPLIED)
            roi_det = Detection(label="", confidence=1.0, box=roi)

        clipped = roi_det.box.clip_to(width, height)
        rect = _pixel_rect(clipped, width, height)
        if clipped.area <= 0 or rect is None:
            raise InvalidInput(f"Region of interest has no area inside the {width}x{height} image: {roi_det.box}")
        roi_det = Detection(label=roi_det.label, confidence=roi_det.confidence, box=clipped, class_id=roi_det.class_id)
        x0, y0, x1, y1 = rect
        region = image[y0:y1, x0:x1]

        _check_cancel(cancel)
        starts: Dict[str, float] = {}
        futures = {role: self._submit(role, region, (x0, y0), starts) for role in ROI_ROLES if role in self._handles}
        results = self._join(futures, starts, cancel)

        ripeness, ripeness_ms = self._mandatory(results, "ripeness")
        defects, defect_ms = self._mandatory(results, "defect")
        variety, variety_ms, variety_note = self._optional_variety(results)
        if variety_note:
            notes.append(variety_note)

        defects = tuple(defects)
        counts = tally_defects(defects)
        decision = decide(ripeness.top_label, counts, self.config.decision)
        size = estimate_size(clipped.area, self.config.size_table)
        timings = PassTimings(
            detection_ms=detection_ms,
            ripeness_ms=ripeness_ms,
            defect_ms=defect_ms,
            variety_ms=variety_ms,
            total_ms=(time.perf_counter() - t_start) * 1000.0,
        )
        logger.debug(
            "Pass timings (ms): detection=%.1f ripeness=%.1f defect=%.1f variety=%.1f total=%.1f",
            timings.detection_ms,
            timings.ripeness_ms,
            timings.defect_ms,
            timings.variety_ms,
            timings.total_ms,
        )

        return PipelineResult(
            roi=roi_det,
            detection_succeeded=detection_succeeded,
            ripeness=ripeness,
            defects=defects,
            defect_counts=counts,
            variety=variety,
            variety_label="" if variety is None else variety.top_label,
            size=size,
            decision=decision,
            defect_area_ratio=defect_area_ratio(clipped, defects),
            image_size=(width, height),
            timings=timings,
            notes=tuple(notes),
        )

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #
    def _pick_roi(self, detections: List[Detection]) -> Optional[Detection]:
        targets = set(self.config.target_labels)
        candidates = [d for d in detections if not targets or d.label in targets]
        if not candidates:
            return None
        return max(candidates, key=lambda d: d.confidence)

    def _submit(
        self,
        role: str,
        region: np.ndarray,
        offset: Tuple[int, int],
        starts: Dict[str, float],
    ) -> "Future[Tuple[Any, float]]":
        return self._executor.submit(self._run_pass, role, region, offset, starts)

    def _run_pass(
        self,
        role: str,
        region: np.ndarray,
        offset: Tuple[int, int],
        starts: Dict[str, float],
    ) -> Tuple[Any, float]:
        # The timeout clock for this pass starts here, not while it waits for a worker.
        starts[role] = time.monotonic()
        spec = self.config.spec_for(role)
        t0 = time.perf_counter()
        if spec.preprocess == "letterbox":
            lb = letterbox(region, spec.input_size, self.config.pad_color)
            blob = to_blob(lb.image)
            geometry = Geometry(scale=lb.scale, pad_x=lb.pad_x, pad_y=lb.pad_y, offset_x=offset[0], offset_y=offset[1])
        else:
            blob = to_blob(resize_square(region, spec.input_size))
            geometry = None

        raw = self._handles[role](blob)
        if role in DETECTION_STYLE_ROLES:
            out: Any = self._decoders[role].process(raw, spec.labels, geometry)
        else:
            out = rank_classification(raw, spec.labels, apply_softmax=spec.apply_softmax)
        return out, (time.perf_counter() - t0) * 1000.0

    def _join(
        self,
        futures: Dict[str, "Future[Tuple[Any, float]]"],
        starts: Mapping[str, float],
        cancel: Optional[threading.Event],
    ) -> Dict[str, Union[Tuple[Any, float], BaseException]]:
        """
        Wait for every pass, honoring the cancel token and the per-pass timeout.

        Each pass gets `model_timeout_s` from the moment a worker starts it; a
        pass still queued behind other calls has no deadline yet.

        Returns role -> (output, ms), or the exception the pass ended with
        (ModelTimeout for passes still running at their deadline).
        """
        timeout_s = self.config.model_timeout_s
        role_of = {fut: role for role, fut in futures.items()}
        pending = set(futures.values())
        timed_out: Set[Future] = set()

        while pending:
            if cancel is not None and cancel.is_set():
                for fut in pending:
                    fut.cancel()
                raise AnalysisCancelled("analysis cancelled")
            wait_s = _POLL_S
            if timeout_s is not None:
                now = time.monotonic()
                for fut in list(pending):
                    started = starts.get(role_of[fut])
                    if started is None:
                        continue
                    remaining = started + timeout_s - now
                    if remaining <= 0 and not fut.done():
                        pending.discard(fut)
                        timed_out.add(fut)
                    else:
                        wait_s = min(wait_s, max(remaining, 0.0))
                if not pending:
                    break
            _, pending = wait(pending, timeout=wait_s, return_when=FIRST_COMPLETED)

        out: Dict[str, Union[Tuple[Any, float], BaseException]] = {}
        for fut, role in role_of.items():
            if fut in timed_out and not fut.done():
                # A running call cannot be interrupted; its result is discarded.
                logger.warning(
                    "%s pass exceeded %gs and is still running; its worker stays busy until the call returns",
                    role,
                    timeout_s,
                )
                out[role] = ModelTimeout(role, float(timeout_s))
                continue
            exc = fut.exception()
            if exc is None:
                out[role] = fut.result()
            elif isinstance(exc, ModelInvocationFailure):
                out[role] = exc
            else:
                failure = ModelInvocationFailure(role, f"{type(exc).__name__}: {exc}")
                failure.__cause__ = exc
                out[role] = failure
        return out

    def _mandatory(self, results: Mapping[str, Any], role: str) -> Tuple[Any, float]:
        value = results[role]
        if isinstance(value, BaseException):
            raise value
        return value

    def _optional_variety(self, results: Mapping[str, Any]) -> Tuple[Any, float, str]:
        if "variety" not in results:
            return None, 0.0, NOTE_VARIETY_UNAVAILABLE
        value = results["variety"]
        if isinstance(value, ModelTimeout):
            logger.warning("Variety pass degraded: %s", value)
            return None, 0.0, NOTE_VARIETY_TIMEOUT
        if isinstance(value, BaseException):
            logger.warning("Variety pass degraded: %s", value)
            return None, 0.0, NOTE_VARIETY_FAILED
        output, ms = value
        return output, ms, ""


def _check_cancel(cancel: Optional[threading.Event]) -> None:
    if cancel is not None and cancel.is_set():
        raise AnalysisCancelled("analysis cancelled")


def _pixel_rect(box: Box, width: int, height: int) -> Optional[Tuple[int, int, int, int]]:
    """Integer crop rect covering `box`, clamped to the image; None when it is empty."""
    x1, y1, x2, y2 = box.as_xyxy()
    x0 = max(0, int(math.floor(x1)))
    y0 = max(0, int(math.floor(y1)))
    x1i = min(width, int(math.ceil(x2)))
    y1i = min(height, int(math.ceil(y2)))
    if x1i <= x0 or y1i <= y0:
        return None
    return x0, y0, x1i, y1i


def load_handles(
    models_dir: Union[str, Path],
    config: PipelineConfig,
    *,
    backend: Optional[str] = None,
    root: Optional[Union[str, Path]] = "auto",
    onnx_providers: Optional[List[str]] = None,
    torch_device: str = "cpu",
) -> Dict[str, Optional[ModelHandle]]:
    """
    Load every model named by `config` from `models_dir`.

    An absent optional model (variety) maps to None; an absent mandatory model
    raises ConfigurationError.
    """
    base = resolve_path(models_dir, root=root)
    handles: Dict[str, Optional[ModelHandle]] = {}
    for role in ROLES:
        spec = config.spec_for(role)
        if spec is None:
            handles[role] = None
            continue
        if not spec.filename:
            if spec.mandatory:
                raise ConfigurationError(f"No model file configured for {role}", missing_roles=[role])
            handles[role] = None
            continue
        path = base / spec.filename
        if not path.exists():
            if spec.mandatory:
                raise ConfigurationError(f"Mandatory {role} model not found: {path}", missing_roles=[role])
            logger.warning("Optional %s model not found (%s); continuing without it", role, path)
            handles[role] = None
            continue
        handles[role] = load_model_handle(
            path,
            backend=backend,
            onnx_providers=onnx_providers,
            torch_device=torch_device,
        )
    return handles
