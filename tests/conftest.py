from __future__ import annotations

import sys
from pathlib import Path

# Running the suite from a plain checkout (no `pip install -e .`) needs the repo
# root importable for `vision_kit` and `Fruit_Grading`.
_REPO_ROOT = str(Path(__file__).resolve().parent.parent)
if _REPO_ROOT not in sys.path:
    sys.path.insert(0, _REPO_ROOT)
