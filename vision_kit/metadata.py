from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Union


def load_labels(metadata_path: Union[str, Path]) -> List[str]:
    """
    Load an ordered label list for a model.

    Two formats are accepted:

        names:            # Ultralytics-style metadata.yaml
          0: Mango
          1: Apple

    or a plain text file with one label per line (line order = class index).
    Blank lines and `#` comments are skipped. This intentionally avoids a PyYAML
    dependency.
    """

    path = Path(metadata_path)
    if not path.exists():
        raise FileNotFoundError(f"Label file not found: {path}")

    lines = [raw.strip() for raw in path.read_text(encoding="utf-8").splitlines()]
    lines = [line for line in lines if line and not line.startswith("#")]

    if "names:" not in lines:
        if not lines:
            raise ValueError(f"Label file is empty: {path}")
        return lines

    names: Dict[int, str] = {}
    in_names = False
    for line in lines:
        if line == "names:":
            in_names = True
            continue
        if not in_names:
            continue

        # Parse "id: label"
        if ":" not in line:
            break
        left, right = line.split(":", 1)
        left = left.strip()
        right = right.strip().strip("'").strip('"')
        if not left.isdigit():
            break
        names[int(left)] = right

    if not names:
        raise ValueError(f"No labels found under 'names:' in {path}")
    expected = list(range(len(names)))
    if sorted(names) != expected:
        raise ValueError(f"Label ids in {path} must be contiguous from 0, got {sorted(names)}")
    return [names[i] for i in expected]
