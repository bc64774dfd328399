"""
Run report persistence — atomic write of a provisioning run summary.

Reports are JSON. Writes are atomic (write to temp file, then rename)
so a crash never leaves a half-written report behind.
"""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def save_report(data: dict[str, Any], path: Path) -> None:
    """Save a run report as JSON (atomic write).

    Args:
        data: Serializable report, e.g. ``RunReport.to_dict()``.
        path: Target path.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    try:
        _fd, tmp_path = tempfile.mkstemp(
            dir=path.parent,
            prefix=".report_",
            suffix=".tmp",
        )
        tmp = Path(tmp_path)
        try:
            with open(_fd, "w", encoding="utf-8") as f:
                f.write(content)
            tmp.replace(path)
            logger.debug("Report saved to %s", path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise
    except Exception as e:
        logger.error("Failed to save report to %s: %s", path, e)
        raise

