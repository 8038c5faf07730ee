from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple

_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from Fruit_Grading.config import DEFAULT_PRESET, PRESETS, get_preset, load_pipeline_config  # noqa: E402
from Fruit_Grading.evaluation import TimingSummary, summarize_timings  # noqa: E402
from Fruit_Grading.ingest import read_image_rgb  # noqa: E402
from Fruit_Grading.orchestrator import GradingPipeline, load_handles  # noqa: E402
from Fruit_Grading.result import PipelineResult  # noqa: E402


def _format_ms_triplet(s: TimingSummary) -> str:
    return f"{s.mean_ms:.3f}/{s.p50_ms:.3f}/{s.p95_ms:.3f}"


def _print_table(summaries: Dict[str, TimingSummary]) -> None:
    rows: List[Tuple[str, str, str, str]] = []
    for name, s in summaries.items():
        rows.append((name, str(s.n), _format_ms_triplet(s), f"{s.p90_ms:.3f}"))

    headers = ("pass", "n", "mean/p50/p95 ms", "p90 ms")
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    def fmt(row: Sequence[str]) -> str:
        return "  ".join(cell.ljust(widths[i]) for i, cell in enumerate(row))

    print(fmt(headers))
    print("  ".join("-" * w for w in widths))
    for row in rows:
        print(fmt(row))


def main() -> int:
    parser = argparse.ArgumentParser(description="Repeat one image through the grading pipeline and summarize per-pass latency.")
    parser.add_argument("--image", required=True, help="Path to an input image (repeated N times).")
    parser.add_argument("--models-dir", default="Models", help="Folder with the pipeline's model files.")
    parser.add_argument("--preset", default=None, choices=sorted(PRESETS), help=f"Pipeline preset (default: {DEFAULT_PRESET}).")
    parser.add_argument("--pipeline-config", default=None, help="Deployment config JSON (preset + overrides).")
    parser.add_argument("--backend", default=None, help="Force backend: onnxruntime / torchscript.")
    parser.add_argument(
        "--onnx-providers",
        default=None,
        help='Comma-separated ORT providers, e.g. "CUDAExecutionProvider,CPUExecutionProvider".',
    )
    parser.add_argument("--warmup", type=int, default=5, help="Warmup runs to execute but not record.")
    parser.add_argument("--repeats", type=int, default=50, help="Number of recorded runs.")
    parser.add_argument("--json-out", default=None, help="Optional output path to write results JSON.")
    args = parser.parse_args()

    if args.warmup < 0:
        raise ValueError("--warmup must be >= 0")
    if args.repeats < 1:
        raise ValueError("--repeats must be >= 1")
    if args.pipeline_config and args.preset:
        raise ValueError("Use either --pipeline-config or --preset, not both.")

    config = load_pipeline_config(Path(args.pipeline_config)) if args.pipeline_config else get_preset(args.preset or DEFAULT_PRESET)
    onnx_providers = None
    if args.onnx_providers:
        onnx_providers = [p.strip() for p in str(args.onnx_providers).split(",") if p.strip()]
    handles = load_handles(args.models_dir, config, backend=args.backend, onnx_providers=onnx_providers)

    image = read_image_rgb(args.image)
    results: List[PipelineResult] = []
    with GradingPipeline(config, handles) as pipeline:
        print(f"running preset={config.name!r} warmup={args.warmup} repeats={args.repeats} ...")
        for _ in range(int(args.warmup)):
            pipeline.analyze(image)
        for _ in range(int(args.repeats)):
            results.append(pipeline.analyze(image))

    summaries = summarize_timings(results)
    _print_table(summaries)

    if args.json_out:
        payload: Dict[str, Any] = {
            "preset": config.name,
            "image": str(args.image),
            "timings": {name: asdict(s) for name, s in summaries.items()},
        }
        out_path = Path(args.json_out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        print(f"wrote {out_path}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
