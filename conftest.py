"""Ensure the checkout's own source is importable, even when pytest
is launched by a Python whose site-packages point elsewhere (e.g. another
editable install of scribe)."""

import importlib
import sys
from pathlib import Path

_src = str(Path(__file__).resolve().parent / "src")
if _src not in sys.path:
    sys.path.insert(0, _src)
    # Force re-import so this checkout's scribe is loaded
    for mod_name in [m for m in sys.modules if m == "scribe" or m.startswith("scribe.")]:
        del sys.modules[mod_name]
    importlib.invalidate_caches()
