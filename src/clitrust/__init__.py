"""clitrust: Trust evaluation for CLI binaries discovered by autonomous agents."""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"
