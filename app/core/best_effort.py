"""Non-propagating runner for secondary side effects, with a process-local dead-letter log."""
import threading
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Deque, List, Optional

logger = logging.getLogger(__name__)

DEAD_LETTER_MAX_SIZE = 500


@dataclass
class BestEffortResult:
    label: str
    ok: bool
    value: Any = None
    error: Optional[str] = None


@dataclass
class FailedSideEffect:
    label: str
    error: str
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


_lock = threading.Lock()
_dead_letters: Deque[FailedSideEffect] = deque(maxlen=DEAD_LETTER_MAX_SIZE)


def run_best_effort(label: str, func: Callable[..., Any], *args, **kwargs) -> BestEffortResult:
    """Call func; on failure log it, park it in the dead-letter log and return ok=False. Never raises."""
    try:
        return BestEffortResult(label=label, ok=True, value=func(*args, **kwargs))
    except Exception as e:
        logger.error(f"Best-effort step '{label}' failed: {e}")
        with _lock:
            _dead_letters.append(FailedSideEffect(label=label, error=str(e)))
        return BestEffortResult(label=label, ok=False, error=str(e))


def recent_failures(limit: int = 50) -> List[FailedSideEffect]:
    with _lock:
        return list(_dead_letters)[-limit:]


def clear_failures() -> None:
    with _lock:
        _dead_letters.clear()
