from __future__ import annotations

import sys
from pathlib import Path

# Allow `python Scripts/run_grading.py ...` from a checkout without installing.
_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from Fruit_Grading.runner import main  # noqa: E402


if __name__ == "__main__":
    raise SystemExit(main())
