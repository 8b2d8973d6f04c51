# deepshare_ip/reconciliation_store.py

import logging
import threading
from collections import Counter, deque
from typing import Deque, Dict, List

from .models.registration_models import ReconciliationOutcome, ReconciliationStatus

logger = logging.getLogger(__name__)

MAX_EVENTS = 500

# --- In-Memory Reconciliation Event Log ---
# Every record-store write outcome lands here so drift between the ledger and
# Supabase is visible at /reconciliation/events. Lost on restart.
_events: Deque[ReconciliationOutcome] = deque(maxlen=MAX_EVENTS)
_counts: Counter = Counter()
_lock = threading.Lock()


def record(outcome: ReconciliationOutcome):
    """Appends a reconciliation outcome to the log."""
    with _lock:
        _events.append(outcome)
        _counts[outcome.status.value] += 1
    if outcome.ok or outcome.status == ReconciliationStatus.SKIPPED:
        logger.debug(f"Reconciliation recorded for {outcome.image_cid}: {outcome.status.value}")
    else:
        logger.warning(f"Reconciliation drift for image_cid {outcome.image_cid}: {outcome.status.value} ({outcome.detail})")


def list_events(limit: int = 50) -> List[ReconciliationOutcome]:
    """Most recent outcomes first."""
    with _lock:
        events = list(_events)
    events.reverse()
    return events[:limit]


def counts() -> Dict[str, int]:
    """Outcome counts by status since process start."""
    with _lock:
        return dict(_counts)


def clear():
    with _lock:
        _events.clear()
        _counts.clear()
