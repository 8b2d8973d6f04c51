import hashlib
import json
import logging
from typing import Any, Dict

import requests
from pydantic import BaseModel

from .. import config
from ..exceptions import ContentFetchError, PublishError

logger = logging.getLogger(__name__)

FETCH_TIMEOUT_SECONDS = 30


# --- CID helpers ---
# Documents embed ipfs:// URIs; anything shown to a browser uses a gateway URL.

def ipfs_uri(cid: str) -> str:
    return f"ipfs://{cid}"


def gateway_url(cid: str) -> str:
    """HTTP URL of a CID on the configured (Pinata) gateway."""
    return f"{config.IPFS_GATEWAY}/ipfs/{cid}"


def public_gateway_url(cid: str) -> str:
    """HTTP URL of a CID on the public gateway; used for the URIs bound on-chain."""
    return f"{config.PUBLIC_IPFS_GATEWAY}/ipfs/{cid}"


def serialize_document(document: BaseModel | Dict[str, Any]) -> str:
    """Compact JSON form of a document, with absent (None) fields dropped."""
    if isinstance(document, BaseModel):
        document = document.model_dump(mode="json", exclude_none=True)
    return json.dumps(document, separators=(",", ":"), ensure_ascii=False)


def content_digest(document: BaseModel | Dict[str, Any]) -> str:
    """0x-prefixed SHA-256 of the serialized document, for on-chain binding."""
    digest = hashlib.sha256(serialize_document(document).encode("utf-8")).hexdigest()
    return f"0x{digest}"


# --- Fetch ---

def fetch_json(cid: str) -> Any:
    """
    Fetches a JSON payload from the IPFS gateway.

    Raises ContentFetchError on network errors, non-2xx responses and bodies
    that are not JSON.
    """
    url = gateway_url(cid)
    logger.info(f"Fetching CID {cid} from {url}")
    try:
        response = requests.get(url, timeout=FETCH_TIMEOUT_SECONDS)
        response.raise_for_status()
        payload = response.json()
    except requests.exceptions.RequestException as e:
        logger.error(f"Failed to fetch CID {cid} from IPFS gateway: {type(e).__name__} - {e}")
        raise ContentFetchError(cid, e) from e
    except ValueError as e:
        # requests raises a ValueError subclass for undecodable JSON
        logger.error(f"CID {cid} did not resolve to a JSON document: {e}")
        raise ContentFetchError(cid, e) from e

    logger.info(f"Fetched CID {cid} from IPFS gateway")
    return payload


def extract_depth_data(payload: Any) -> Any:
    """Returns payload['data']['depthData'] when present, otherwise the whole payload."""
    if isinstance(payload, dict):
        data = payload.get("data")
        if isinstance(data, dict) and data.get("depthData") is not None:
            return data["depthData"]
    return payload


# --- Publish ---

def publish_json(document: BaseModel | Dict[str, Any], name: str | None = None) -> str:
    """Pins a JSON document to IPFS through Pinata and returns its CID."""
    if not config.PINATA_API_KEY or not config.PINATA_SECRET_KEY:
        logger.error("Pinata credentials not configured. Cannot upload metadata.")
        raise PublishError("Failed to upload JSON to IPFS: Pinata credentials are not configured")

    if isinstance(document, BaseModel):
        document = document.model_dump(mode="json", exclude_none=True)

    url = f"{config.PINATA_API_URL}/pinning/pinJSONToIPFS"
    headers = {
        "Content-Type": "application/json",
        "pinata_api_key": config.PINATA_API_KEY,
        "pinata_secret_api_key": config.PINATA_SECRET_KEY,
    }
    body: Dict[str, Any] = {"pinataContent": document}
    if name:
        body["pinataMetadata"] = {"name": name}

    logger.info(f"Uploading JSON document{f' {name!r}' if name else ''} to Pinata...")
    try:
        response = requests.post(url, json=body, headers=headers, timeout=config.PINATA_TIMEOUT_SECONDS)
        response.raise_for_status()
        result = response.json()
    except requests.exceptions.HTTPError as e:
        logger.error(f"Pinata upload failed with HTTP {e.response.status_code}: {e.response.text}")
        raise PublishError(f"Failed to upload JSON to IPFS: {e}") from e
    except requests.exceptions.RequestException as e:
        logger.error(f"Pinata upload failed: {type(e).__name__} - {e}", exc_info=True)
        raise PublishError(f"Failed to upload JSON to IPFS: {e}") from e
    except ValueError as e:
        logger.error(f"Pinata returned a non-JSON response: {e}")
        raise PublishError(f"Failed to upload JSON to IPFS: invalid response ({e})") from e

    cid = result.get("IpfsHash") if isinstance(result, dict) else None
    if not cid:
        logger.error(f"Pinata upload returned unexpected format. Response: {result}")
        raise PublishError("Failed to upload JSON to IPFS: response did not contain IpfsHash")

    logger.info(f"Uploaded to IPFS: {cid}")
    return cid
