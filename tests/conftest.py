from __future__ import annotations

import os
import tempfile

# app.py opens its JsonStore at import time
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="storyboard-test-"))
