# deepshare_ip/collection_store.py

import json
import logging
import os
import threading
from typing import Callable, Dict

from . import config

logger = logging.getLogger(__name__)

# --- Process-wide SPG NFT collection handle ---
# Held in memory for the life of the process and mirrored to a small JSON file
# ("<chain id>:<owner address>" -> collection address) so a restart reuses the same collection.
_collection_address: str | None = None
_lock = threading.Lock()


def get_cached() -> str | None:
    """Returns the in-memory collection address, if provisioned."""
    return _collection_address


def state_key(chain_id: int, owner: str) -> str:
    """Collections are owner-only, so the handle belongs to one chain and one wallet."""
    return f"{chain_id}:{owner.lower()}"


def load_persisted(chain_id: int, owner: str) -> str | None:
    """Looks up a collection address from the environment or the state file."""
    if config.SPG_NFT_CONTRACT:
        logger.info(f"Using SPG NFT collection from environment: {config.SPG_NFT_CONTRACT}")
        return config.SPG_NFT_CONTRACT

    state = _read_state()
    address = state.get(state_key(chain_id, owner))
    if address:
        logger.info(f"Loaded SPG NFT collection {address} for chain {chain_id}, owner {owner} from {config.COLLECTION_STATE_FILE}")
    return address


def persist(chain_id: int, owner: str, address: str):
    """Records the collection address for this chain and owner in the state file."""
    path = config.COLLECTION_STATE_FILE
    if not path:
        logger.warning("COLLECTION_STATE_FILE not set. Collection address will be lost on restart.")
        return
    state = _read_state()
    state[state_key(chain_id, owner)] = address
    try:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{path}.tmp"
        with open(tmp_path, "w") as f:
            json.dump(state, f, indent=2)
        os.replace(tmp_path, path)
        logger.info(f"Persisted SPG NFT collection {address} for chain {chain_id} to {path}")
    except OSError as e:
        # The collection exists on-chain either way; only reuse across restarts is lost
        logger.error(f"Failed to persist collection address to {path}: {e}", exc_info=True)


def get_or_create(chain_id: int, owner: str, create: Callable[[], str]) -> str:
    """
    Returns the collection address, creating it at most once.

    Concurrent first callers block on the lock and all receive the address
    produced by a single ``create()`` call. If ``create`` raises, nothing is
    cached and the next caller tries again.
    """
    global _collection_address

    if _collection_address:
        return _collection_address

    with _lock:
        if _collection_address:
            return _collection_address

        address = load_persisted(chain_id, owner)
        if not address:
            address = create()
            persist(chain_id, owner, address)
        _collection_address = address
        return address


def reset():
    """Forgets the in-memory handle (the state file is left untouched)."""
    global _collection_address
    with _lock:
        _collection_address = None


def _read_state() -> Dict[str, str]:
    path = config.COLLECTION_STATE_FILE
    if not path or not os.path.exists(path):
        return {}
    try:
        with open(path, "r") as f:
            state = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Could not read collection state file {path}: {e}")
        return {}
    if not isinstance(state, dict):
        logger.error(f"Ignoring collection state file {path}: expected a JSON object")
        return {}
    return state
