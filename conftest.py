"""Root conftest: runs before any test module imports."""

import os

# The CLI's Rich consoles are created at import time and read these once.
# FORCE_COLOR (set by GitHub Actions) would inject ANSI escape codes into
# CliRunner output and break plain-text substring checks.
os.environ.pop("FORCE_COLOR", None)
os.environ["NO_COLOR"] = "1"
os.environ.setdefault("COLUMNS", "200")
