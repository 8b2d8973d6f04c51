from fastapi import APIRouter, Query
import logging

from .. import reconciliation_store
from ..models.registration_models import ReconciliationEventsResponse

router = APIRouter(
    prefix="/reconciliation",
    tags=["Reconciliation"],
)

logger = logging.getLogger(__name__)


@router.get("/events", response_model=ReconciliationEventsResponse)
def get_reconciliation_events(limit: int = Query(50, ge=1, le=reconciliation_store.MAX_EVENTS)):
    """
    Lists recent record-store reconciliation outcomes, newest first, with
    per-status counts since startup. Anything other than 'updated' means the
    Supabase row does not reflect the on-chain registration.
    """
    return ReconciliationEventsResponse(
        events=reconciliation_store.list_events(limit),
        counts=reconciliation_store.counts(),
    )
