from __future__ import annotations

from .backend import Engine
from .process_engine import ProcessEngine

__all__ = ["Engine", "ProcessEngine"]
