"""Re-export persistence protocols from core for convenience."""

from __future__ import annotations

from homework_engine.core.protocols import IBlobStore, IHomeworkStore, ILockBackend

__all__ = ["IBlobStore", "IHomeworkStore", "ILockBackend"]
