"""
JSON run configs for the grading CLI.

A run config holds the same settings as the command line, keyed by argparse dest:

    {
      "input": {"folder": "samples/ripe"},
      "preset": "available_sale",
      "expected": "ripe",
      "limit": 0,
      "onnx_providers": ["CUDAExecutionProvider", "CPUExecutionProvider"]
    }

The image source can sit in an "input" block or at the top level, not both.
Flags given explicitly on the command line win over the file.
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Callable, Dict, List, Sequence

INPUT_KEYS = ("image", "folder")


def load_run_config(path: Path) -> Dict[str, object]:
    if not path.exists():
        raise FileNotFoundError(f"Run config not found: {path}")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid run config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Run config must be a JSON object")
    return payload


def collect_cli_dests(parser: argparse.ArgumentParser, argv: Sequence[str]) -> set[str]:
    """Destinations the user set explicitly on the command line."""
    given = {arg.split("=", 1)[0] for arg in argv if arg.startswith("--")}
    return {action.dest for opt, action in parser._option_string_actions.items() if opt in given}


def _str(key: str, value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{key} must be a non-empty string")
    return value


def _int(key: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be an integer")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"{key} must be an integer")
    return int(value)


def _float(key: str, value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _bool(key: str, value: object) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"{key} must be a boolean")
    return value


def _providers(key: str, value: object) -> str:
    # Stored the way --onnx-providers arrives from the CLI: one comma-separated string.
    if isinstance(value, list):
        items: List[str] = []
        for item in value:
            items.append(_str(key, item).strip())
        if not items:
            raise ValueError(f"{key} must not be an empty list")
        return ",".join(items)
    return _str(key, value)


COERCERS: Dict[str, Callable[[str, object], object]] = {
    **{k: _str for k in INPUT_KEYS},
    **{
        k: _str
        for k in (
            "models_dir",
            "preset",
            "pipeline_config",
            "backend",
            "torch_device",
            "expected",
            "out_dir",
            "annotate_out",
            "lang",
            "log_level",
        )
    },
    **{k: _int for k in ("limit", "max_workers")},
    **{k: _float for k in ("detection_conf", "defect_conf", "timeout_s")},
    **{k: _bool for k in ("recursive", "size_simulation", "progress", "no_csv")},
    "onnx_providers": _providers,
}


def _flatten_input(payload: Dict[str, object]) -> Dict[str, object]:
    block = payload.get("input")
    if block is None:
        return dict(payload)
    if not isinstance(block, dict):
        raise ValueError("run config 'input' must be an object")
    if any(k in payload for k in INPUT_KEYS):
        raise ValueError("Use either the 'input' block or top-level image/folder keys, not both.")
    unknown = sorted(k for k in block if k not in INPUT_KEYS)
    if unknown:
        raise ValueError(f"Unknown run config input keys: {unknown}")
    flat = {k: v for k, v in payload.items() if k != "input"}
    flat.update(block)
    return flat


def apply_run_config(
    *,
    args: argparse.Namespace,
    payload: Dict[str, object],
    cli_dests: set[str],
    parser: argparse.ArgumentParser,
) -> None:
    if "config" in payload:
        raise ValueError("run config must not include the 'config' key")
    flat = _flatten_input(payload)
    if sum(1 for k in INPUT_KEYS if flat.get(k) not in (None, "")) > 1:
        raise ValueError("run config must set only one of image/folder")

    known = {action.dest for action in parser._actions if action.dest != "help"}
    unknown = sorted(k for k in flat if k not in known or k not in COERCERS)
    if unknown:
        raise ValueError(f"Unknown run config keys: {unknown}")

    for key, value in flat.items():
        if key in cli_dests or value is None:
            continue
        setattr(args, key, COERCERS[key](key, value))
