"""
L1 Domain — Download helpers (pure).

Size formatting and downloader command construction.
No I/O, no subprocess.
"""

from __future__ import annotations

from pathlib import Path

from provisioner.core.services.provisioning.data.constants import ARIA2_BINARY


def _fmt_size(n: int | float) -> str:
    """Format byte count to human-readable string."""
    for unit in ("B", "KB", "MB", "GB"):
        if n < 1024:
            return f"{n:.1f} {unit}"
        n /= 1024
    return f"{n:.1f} TB"


def aria2_command(
    url: str,
    destination: Path,
    *,
    connections: int = 16,
    piece_size: str = "1M",
    binary: str = ARIA2_BINARY,
) -> list[str]:
    """Build a resumable multi-connection aria2c invocation.

    ``-x`` caps connections per server, ``-s`` splits the file into that
    many byte-range segments, ``-k`` sets the minimum segment size.
    """
    return [
        binary,
        "-x", str(connections),
        "-s", str(connections),
        "-k", piece_size,
        "--continue=true",
        "--console-log-level=warn",
        "--summary-interval=0",
        "-d", str(destination.parent),
        "-o", destination.name,
        url,
    ]
