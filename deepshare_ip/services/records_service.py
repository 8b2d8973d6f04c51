import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

import requests

from .. import config
from ..exceptions import ReconciliationWarning
from ..models.registration_models import ReconciliationOutcome, ReconciliationStatus

logger = logging.getLogger(__name__)

LOOKUP_TIMEOUT_SECONDS = 10
UPDATE_TIMEOUT_SECONDS = 10
VERIFY_TIMEOUT_SECONDS = 5

# Columns the images table must carry; only ip and tx_hash are written here
RECORD_COLUMNS = ("wallet_address", "image_cid", "metadata_cid", "ip", "tx_hash")


def is_configured() -> bool:
    return bool(config.SUPABASE_URL and config.SUPABASE_KEY)


def _table_url() -> str:
    return f"{config.SUPABASE_URL.rstrip('/')}/rest/v1/{config.SUPABASE_TABLE}"


def _headers() -> Dict[str, str]:
    return {
        "apikey": config.SUPABASE_KEY,
        "Authorization": f"Bearer {config.SUPABASE_KEY}",
        "Content-Type": "application/json",
        "Prefer": "return=representation",
    }


def _cid_filter(image_cid: str) -> Dict[str, str]:
    return {"image_cid": f"eq.{image_cid}"}


def find_record(image_cid: str) -> Dict[str, Any] | None:
    """Returns the images row for this CID, or None if the upload service never created it."""
    params = {**_cid_filter(image_cid), "select": "wallet_address,image_cid,metadata_cid"}
    response = requests.get(_table_url(), params=params, headers=_headers(), timeout=LOOKUP_TIMEOUT_SECONDS)
    response.raise_for_status()
    rows = response.json()
    return rows[0] if rows else None


def update_record(image_cid: str, ip_url: str, tx_hash: str) -> List[Dict[str, Any]]:
    """PATCHes exactly the ip and tx_hash columns of the matching row."""
    response = requests.patch(
        _table_url(),
        params=_cid_filter(image_cid),
        json={"ip": ip_url, "tx_hash": tx_hash},
        headers=_headers(),
        timeout=UPDATE_TIMEOUT_SECONDS,
    )
    response.raise_for_status()
    logger.debug(f"Supabase PATCH status {response.status_code}, body: {response.text}")
    return response.json() if response.content else []


def verify_record(image_cid: str, ip_url: str, tx_hash: str) -> Dict[str, Any]:
    """
    Re-reads the row and checks both written fields.

    A PATCH blocked by row-level security returns 2xx with zero rows touched,
    so only a re-read proves the write landed.
    """
    params = {**_cid_filter(image_cid), "select": "image_cid,ip,tx_hash"}
    response = requests.get(_table_url(), params=params, headers=_headers(), timeout=VERIFY_TIMEOUT_SECONDS)
    response.raise_for_status()
    rows = response.json()
    if not rows:
        raise ReconciliationWarning(ReconciliationStatus.VERIFICATION_FAILED.value, "Row disappeared after update")

    row = rows[0]
    if row.get("ip") != ip_url or row.get("tx_hash") != tx_hash:
        raise ReconciliationWarning(
            ReconciliationStatus.VERIFICATION_FAILED.value,
            f"Expected ip={ip_url!r} tx_hash={tx_hash!r}, got ip={row.get('ip')!r} tx_hash={row.get('tx_hash')!r}. "
            "Check that the Supabase key has update permission (RLS policy).",
        )
    return row


def reconcile_registration(image_cid: str, ip_url: str, tx_hash: str) -> ReconciliationOutcome:
    """
    Writes the explorer URL and transaction hash back to the images row.

    Best effort: the on-chain registration is already final, so every failure
    is logged and reported as an outcome. This function never raises.
    """
    if not is_configured():
        logger.info("Skipping Supabase update (credentials not configured)")
        return _outcome(ReconciliationStatus.SKIPPED, image_cid, "Supabase credentials not configured")

    logger.info(f"Updating Supabase table {config.SUPABASE_TABLE} for image_cid {image_cid}: ip={ip_url}, tx_hash={tx_hash}")
    try:
        existing = find_record(image_cid)
        if existing is None:
            logger.error(f"No row found with image_cid = {image_cid}. The upload service must create the row first.")
            return _outcome(ReconciliationStatus.ROW_NOT_FOUND, image_cid, "No row with this image_cid")
        logger.info(f"Found existing row: {existing}")

        update_record(image_cid, ip_url, tx_hash)
        row = verify_record(image_cid, ip_url, tx_hash)
        logger.info(f"Confirmed Supabase row for {image_cid}: {row}")
        return _outcome(ReconciliationStatus.UPDATED, image_cid)

    except ReconciliationWarning as w:
        logger.error(f"Supabase verification failed for {image_cid}: {w}")
        return _outcome(ReconciliationStatus(w.status), image_cid, str(w))
    except requests.exceptions.HTTPError as e:
        logger.error(f"Failed to update Supabase for {image_cid}: HTTP {e.response.status_code} - {e.response.text}")
        return _outcome(ReconciliationStatus.ERROR, image_cid, str(e))
    except requests.exceptions.RequestException as e:
        logger.error(f"Failed to update Supabase for {image_cid}: {type(e).__name__} - {e}")
        return _outcome(ReconciliationStatus.ERROR, image_cid, str(e))
    except Exception as e:
        logger.error(f"Unexpected error updating Supabase for {image_cid}: {e}", exc_info=True)
        return _outcome(ReconciliationStatus.ERROR, image_cid, str(e))


def inspect_table() -> Dict[str, Any]:
    """
    Reads one row of the images table to confirm connectivity and columns.

    Returns {"sample": row or None, "missing_columns": [...]}; missing columns
    can only be detected when the table has at least one row.
    """
    params = {"select": "*", "limit": "1"}
    response = requests.get(_table_url(), params=params, headers=_headers(), timeout=LOOKUP_TIMEOUT_SECONDS)
    response.raise_for_status()
    rows = response.json()
    sample = rows[0] if rows else None
    missing = [c for c in RECORD_COLUMNS if sample is not None and c not in sample]
    return {"sample": sample, "missing_columns": missing}


def _outcome(status: ReconciliationStatus, image_cid: str, detail: str | None = None) -> ReconciliationOutcome:
    return ReconciliationOutcome(
        status=status,
        image_cid=image_cid,
        detail=detail,
        recorded_at=datetime.now(timezone.utc),
    )
