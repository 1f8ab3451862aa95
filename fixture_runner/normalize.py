"""Normalization of compiler diagnostics before snapshot comparison."""

import os
from pathlib import Path


def normalize_stderr(stderr: bytes, project_dir: Path | None = None) -> str:
    """Decode diagnostics and make them independent of platform and checkout.

    Line endings are unified to ``\\n`` and occurrences of the project
    directory are replaced by ``$DIR/``.
    """
    text = stderr.decode("utf-8", errors="replace")
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    if project_dir is not None:
        prefix = str(project_dir).rstrip("/\\") + os.sep
        text = text.replace(prefix, "$DIR/")
        if os.sep != "/":
            text = text.replace(prefix.replace(os.sep, "/"), "$DIR/")
    return text
