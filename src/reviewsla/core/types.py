"""Type aliases used across the ReviewSLA engine."""

from __future__ import annotations

from typing import Any

JsonDict = dict[str, Any]
