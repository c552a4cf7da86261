#!/usr/bin/env python3
"""Run the model constructor job, e.g.

    python scripts/run_model_constructor.py --inputDir data/graphchi/ --appid 1 --algoid 7 \
        --modelSet false --unseenOnly true --numRecommendations 20
"""
from __future__ import annotations

# ---- keep BLAS single-threaded; the job parallelizes over users itself
import os
os.environ.setdefault("OPENBLAS_NUM_THREADS", "1")
os.environ.setdefault("OMP_NUM_THREADS", "1")
os.environ.setdefault("MKL_NUM_THREADS", "1")

import sys
from pathlib import Path

# Ensure local imports work when run from a checkout
project_root = str(Path(__file__).resolve().parent.parent)
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from itemrec.cli import main

if __name__ == "__main__":
    sys.exit(main())
