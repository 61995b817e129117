"""Run productivity-insights analysis from a JSON snapshot or CSV task export."""

from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from productivity_insights.cli import main

if __name__ == "__main__":
    main()
