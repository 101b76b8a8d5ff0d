# --- path/bootstrap (keep this at the very top) ---
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

for p in (SRC, ROOT):
    if p.is_dir() and str(p) not in sys.path:
        sys.path.insert(0, str(p))
# --- end path/bootstrap ---

from datetime import datetime, timedelta, UTC


class FakeClock:
    """Controllable UTC clock; call it for ``now``, ``advance`` to move it."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 3, 1, 12, 0, tzinfo=UTC)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)
        return self.now


class MsClock:
    """Millisecond clock for the performance cache."""

    def __init__(self, start=0.0):
        self.ms = float(start)

    def __call__(self):
        return self.ms

    def advance(self, ms):
        self.ms += ms
        return self.ms
