from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional, Sequence

try:
    from tqdm import tqdm  # type: ignore
except ModuleNotFoundError:
    tqdm = None  # type: ignore[assignment]

from vision_kit.visualize import draw_caption, draw_detections

from .config import DEFAULT_PRESET, PRESETS, PipelineConfig, get_preset, load_pipeline_config
from .display import DETECTION_KO, VARIETY_KO, decision_name, defect_name, lookup_name, ripeness_name, size_name
from .evaluation import evaluate_images, run_size_simulation
from .ingest import iter_image_files, read_image_rgb, write_image_rgb
from .orchestrator import GradingPipeline, load_handles
from .reporting import today_date_str, write_batch_csv, write_evaluation_report, write_result_json, write_run_config
from .result import PipelineResult
from .run_config import apply_run_config, collect_cli_dests, load_run_config

logger = logging.getLogger(__name__)

ROI_COLOR = (0, 200, 0)
DEFECT_COLOR = (255, 69, 0)


def _parse_ort_providers(raw: Optional[str]) -> Optional[List[str]]:
    if raw is None:
        return None
    parts = [p.strip().strip("'\"`") for p in str(raw).split(",")]
    return [p for p in parts if p] or None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Grade fruit images (ripeness, defects, variety, size, decision).")
    parser.add_argument("--config", default=None, help="Run config JSON; explicit CLI flags take precedence.")
    src = parser.add_mutually_exclusive_group()
    src.add_argument("--image", default=None, help="Path to one input image.")
    src.add_argument("--folder", default=None, help="Folder of images to grade as a batch.")

    parser.add_argument("--models-dir", default="Models", help="Folder with detection/best/defect_detection/mango_classify models.")
    parser.add_argument("--preset", default=None, choices=sorted(PRESETS), help=f"Pipeline preset (default: {DEFAULT_PRESET}).")
    parser.add_argument("--pipeline-config", default=None, help="Deployment config JSON (preset + overrides).")
    parser.add_argument("--backend", default=None, help="Force backend: onnxruntime / torchscript.")
    parser.add_argument(
        "--onnx-providers",
        default=None,
        help='Comma-separated ORT providers, e.g. "CUDAExecutionProvider,CPUExecutionProvider".',
    )
    parser.add_argument("--torch-device", default="cpu", help="Device for TorchScript models.")

    parser.add_argument("--detection-conf", type=float, default=None, help="Override fruit detection threshold.")
    parser.add_argument("--defect-conf", type=float, default=None, help="Override defect detection threshold.")
    parser.add_argument("--timeout-s", type=float, default=None, help="Per-model timeout in seconds.")
    parser.add_argument("--max-workers", type=int, default=None, help="Worker threads for the concurrent passes.")

    parser.add_argument("--expected", default=None, help="Expected ripeness label for every image in --folder.")
    parser.add_argument("--size-simulation", action="store_true", help="With --folder: run the size simulation.")
    parser.add_argument("--limit", type=int, default=100, help="Max images from --folder (0 = no limit).")
    parser.add_argument("--recursive", action="store_true", help="Search --folder recursively.")

    parser.add_argument("--out-dir", default="data", help="Root output directory for results/reports.")
    parser.add_argument("--no-csv", action="store_true", help="Skip the batch CSV.")
    parser.add_argument("--annotate-out", default=None, help="With --image: write an annotated copy here.")
    parser.add_argument("--lang", default="ko", choices=("ko", "en"), help="Language of the printed summary.")
    parser.add_argument("--progress", action="store_true", help="Show a progress bar for --folder (needs tqdm).")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG shows per-pass timings).")
    return parser


def resolve_pipeline_config(args: argparse.Namespace) -> PipelineConfig:
    if args.pipeline_config and args.preset:
        raise ValueError("Use either --pipeline-config or --preset, not both.")
    if args.pipeline_config:
        config = load_pipeline_config(Path(args.pipeline_config))
    else:
        config = get_preset(args.preset or DEFAULT_PRESET)

    if args.detection_conf is not None:
        config = replace(config, detection=replace(config.detection, conf_threshold=float(args.detection_conf)))
    if args.defect_conf is not None:
        config = replace(config, defect=replace(config.defect, conf_threshold=float(args.defect_conf)))
    if args.timeout_s is not None:
        config = replace(config, model_timeout_s=float(args.timeout_s) if args.timeout_s > 0 else None)
    if args.max_workers is not None:
        config = replace(config, max_workers=int(args.max_workers))
    return config


def format_summary(result: PipelineResult, *, lang: str = "ko", weights: str = "default") -> List[str]:
    lines = [
        f"decision: {decision_name(result.decision.decision, lang)} ({result.decision.reason})",
        f"ripeness: {ripeness_name(result.ripeness.top_label, lang)} {result.ripeness.top_confidence:.2f}",
        f"size: {size_name(result.size, lang, weights=weights)} area={result.roi_area:.0f}",
    ]
    if result.variety_label:
        variety = lookup_name(result.variety_label, VARIETY_KO) if lang == "ko" else result.variety_label
        lines.append(f"variety: {variety}")
    if result.detection_succeeded:
        fruit = lookup_name(result.roi.label, DETECTION_KO) if lang == "ko" else result.roi.label
        lines.append(f"fruit: {fruit} {result.roi.confidence:.2f}")
    if result.defect_counts:
        parts = [f"{defect_name(k, lang)} x{v}" for k, v in result.defect_counts.items()]
        lines.append(f"defects: {', '.join(parts)} (area ratio {result.defect_area_ratio:.3f})")
    else:
        lines.append("defects: none")
    if result.notes:
        lines.append(f"notes: {', '.join(result.notes)}")
    return lines


def _annotate(image, result: PipelineResult):
    vis = draw_detections(image, [result.roi], color=ROI_COLOR, show_score=result.detection_succeeded)
    vis = draw_detections(vis, result.defects, color=DEFECT_COLOR)
    return draw_caption(vis, format_summary(result, lang="en", weights=""))


def run(args: argparse.Namespace) -> int:
    if (args.image is None) == (args.folder is None):
        raise ValueError("Exactly one of --image or --folder must be set (or via --config).")
    if args.limit < 0:
        raise ValueError("--limit must be >= 0")
    if args.annotate_out and args.folder:
        raise ValueError("--annotate-out is only valid with --image.")
    if (args.expected or args.size_simulation) and not args.folder:
        raise ValueError("--expected/--size-simulation need --folder.")

    config = resolve_pipeline_config(args)
    handles = load_handles(
        args.models_dir,
        config,
        backend=args.backend,
        onnx_providers=_parse_ort_providers(args.onnx_providers),
        torch_device=args.torch_device,
    )

    out_dir = Path(args.out_dir)
    date = today_date_str()
    weights = "size_classification" if config.name == "size_classification" else "default"
    run_config: Dict[str, object] = {"args": {k: v for k, v in vars(args).items()}, "pipeline": config.name}

    with GradingPipeline(config, handles) as pipeline:
        if args.image is not None:
            image_path = Path(args.image)
            image = read_image_rgb(image_path)
            result = pipeline.analyze(image)
            json_path = write_result_json(out_dir=out_dir, date=date, name=image_path.stem, result=result)
            for line in format_summary(result, lang=args.lang, weights=weights):
                print(line)
            print(f"Wrote result: {json_path}")
            if args.annotate_out:
                write_image_rgb(args.annotate_out, _annotate(image, result))
                print(f"Wrote annotated image: {args.annotate_out}")
        else:
            paths = iter_image_files(args.folder, limit=int(args.limit), recursive=bool(args.recursive))
            if not paths:
                raise FileNotFoundError(f"No images found in {args.folder}")
            logger.info("Grading %d images from %s with preset %r", len(paths), args.folder, config.name)

            pbar = None
            if args.progress and tqdm is not None:
                pbar = tqdm(total=len(paths), unit="img", desc="grading")
            elif args.progress:
                print("tqdm is not installed; progress bar disabled.")

            def _progress(done: int, total: int) -> None:
                if pbar is not None:
                    pbar.update(1)

            try:
                report, outcomes = evaluate_images(
                    pipeline,
                    paths,
                    expected_ripeness=args.expected,
                    progress=_progress,
                )
            finally:
                if pbar is not None:
                    pbar.close()

            for outcome in outcomes:
                if outcome.result is not None:
                    write_result_json(out_dir=out_dir, date=date, name=outcome.path.stem, result=outcome.result)
            if not args.no_csv:
                csv_path = write_batch_csv(out_dir=out_dir, date=date, outcomes=outcomes)
                print(f"Wrote batch CSV: {csv_path}")

            size_report = None
            if args.size_simulation:
                size_report = run_size_simulation(pipeline, paths)
            report_path = write_evaluation_report(out_dir=out_dir, date=date, report=report, size_report=size_report)

            print(f"Graded: {report.graded}/{report.total} (errors: {len(report.errors)})")
            if report.accuracy is not None:
                print(f"Accuracy vs {report.expected_label!r}: {report.accuracy:.2f}% ({report.correct}/{report.total})")
            print(f"Decisions: {report.decision_counts}")
            print(f"Sizes: {report.size_counts}")
            if report.feature_means is not None:
                f = report.feature_means
                print(
                    f"Mean features: R={f.mean_r:.1f} G={f.mean_g:.1f} B={f.mean_b:.1f} "
                    f"edge={f.edge_density:.2f}% blob={f.dark_blob_ratio:.2f}%"
                )
            total = report.timings["total"]
            print(f"Latency ms (mean/p50/p95): {total.mean_ms:.1f}/{total.p50_ms:.1f}/{total.p95_ms:.1f}")
            if size_report is not None:
                print(f"Size simulation: {size_report.accuracy:.1f}% ({size_report.correct}/{size_report.total})")
            print(f"Wrote evaluation report: {report_path}")

    run_config_path = write_run_config(out_dir=out_dir, date=date, run_config=run_config)
    print(f"Wrote run config: {run_config_path}")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.config:
        payload = load_run_config(Path(args.config))
        cli_argv = list(argv) if argv is not None else sys.argv[1:]
        apply_run_config(args=args, payload=payload, cli_dests=collect_cli_dests(parser, cli_argv), parser=parser)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return run(args)


if __name__ == "__main__":
    raise SystemExit(main())
