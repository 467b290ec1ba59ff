"""arq worker settings module.

Import path for arq CLI: arq gtg.workers.settings.WorkerSettings
"""

from __future__ import annotations

from gtg.workers.event_cache_worker import WorkerSettings

__all__ = ["WorkerSettings"]
