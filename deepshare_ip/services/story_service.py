from web3 import Web3
from web3.logs import DISCARD
from hexbytes import HexBytes
from decimal import Decimal
import json
import logging
import os
from typing import Any, Dict, List, Tuple

from .. import config
from .. import collection_store
from ..exceptions import ChainSubmissionError, ConfigurationError
from ..models.registration_models import LedgerRegistration, LicenseParameters
from .ipfs_service import public_gateway_url

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
CHAIN_IDS = {"aeneid": 1315, "mainnet": 1514}
# PIL revenue share is expressed in millionths (10% -> 10_000_000)
REV_SHARE_SCALE = 10**6
MAX_COLLECTION_SUPPLY = 2**32 - 1

# --- ABI Loading ---
_ABI_DIR = os.path.join(os.path.dirname(__file__), os.pardir, "abi")
_CONTRACT_NAMES = ("RegistrationWorkflows", "LicenseAttachmentWorkflows", "IPAssetRegistry", "LicensingModule")


def _load_abi(name: str) -> List[Dict[str, Any]] | None:
    path = os.path.join(_ABI_DIR, f"{name}.json")
    try:
        with open(path, "r") as f:
            # Foundry-style artifact: the ABI sits under the 'abi' key
            abi = json.load(f).get("abi")
        if not abi:
            logger.error(f"'abi' key not found in artifact file: {path}")
        return abi
    except FileNotFoundError:
        logger.error(f"CRITICAL: Contract ABI file not found at: {path}. Contract interactions will fail.")
    except json.JSONDecodeError as e:
        logger.error(f"CRITICAL: Failed to parse ABI JSON file {path}: {e}")
    return None


ABIS = {name: _load_abi(name) for name in _CONTRACT_NAMES}

# --- Client state (populated by init_client at startup) ---
w3: Web3 | None = None
account = None
chain_id: int | None = None


def resolve_chain_id(value: str | int) -> int:
    """Maps a network name ('aeneid', 'mainnet') or numeric string to a chain id."""
    if isinstance(value, int):
        return value
    key = str(value).strip().lower()
    if key in CHAIN_IDS:
        return CHAIN_IDS[key]
    if key.isdigit():
        return int(key)
    raise ConfigurationError(f"Unknown CHAIN_ID {value!r}. Use one of {sorted(CHAIN_IDS)} or a numeric chain id.")


def normalize_private_key(key: str) -> str:
    key = key.strip()
    return key if key.startswith("0x") else f"0x{key}"


def init_client() -> str:
    """
    Creates the web3 client and loads the server wallet.

    Raises ConfigurationError when the key is missing or invalid, or the
    contract ABIs are unavailable. Returns the wallet address.
    """
    global w3, account, chain_id

    if not config.PRIVATE_KEY:
        raise ConfigurationError("PRIVATE_KEY not found in environment. Add PRIVATE_KEY=your_key_here to .env")

    missing_abis = [name for name, abi in ABIS.items() if not abi]
    if missing_abis:
        raise ConfigurationError(f"Contract ABIs not loaded: {', '.join(missing_abis)}")

    resolved_chain_id = resolve_chain_id(config.CHAIN_ID)
    try:
        client = Web3(Web3.HTTPProvider(config.RPC_URL))
        signer = client.eth.account.from_key(normalize_private_key(config.PRIVATE_KEY))
    except ValueError as e:
        raise ConfigurationError(f"Invalid PRIVATE_KEY: {e}") from e
    except Exception as e:
        raise ConfigurationError(f"Failed to initialize Story Protocol client: {e}") from e

    client.eth.default_account = signer.address
    w3, account, chain_id = client, signer, resolved_chain_id
    logger.info(f"Story Protocol client initialized. RPC: {config.RPC_URL}, chain id: {chain_id}, server wallet: {account.address}")
    return account.address


def get_wallet_balance() -> Decimal:
    """Server wallet balance in IP tokens."""
    _require_client()
    return w3.from_wei(w3.eth.get_balance(account.address), "ether")


def _require_client():
    if not w3 or not account or chain_id is None:
        raise ChainSubmissionError("Story Protocol client not initialized")


def _contract(name: str, address: str):
    return w3.eth.contract(address=Web3.to_checksum_address(address), abi=ABIS[name])


def _send_transaction(contract_function, description: str) -> Tuple[str, Any]:
    """Builds, signs and sends a contract call from the server wallet; waits for a successful receipt."""
    # Pending nonce so concurrent registrations don't reuse one
    nonce = w3.eth.get_transaction_count(account.address, "pending")
    logger.info(f"{description}: using nonce {nonce} from {account.address}")

    tx_data = contract_function.build_transaction({
        "chainId": chain_id,
        "nonce": nonce,
        "from": account.address,
    })
    signed_tx = account.sign_transaction(tx_data)
    tx_hash_hex = Web3.to_hex(w3.eth.send_raw_transaction(signed_tx.raw_transaction))
    logger.info(f"{description}: transaction sent, hash {tx_hash_hex}. Waiting for receipt...")

    receipt = w3.eth.wait_for_transaction_receipt(tx_hash_hex)
    if receipt["status"] != 1:
        raise ChainSubmissionError(f"{description} transaction {tx_hash_hex} reverted")
    logger.info(f"{description}: transaction {tx_hash_hex} confirmed in block {receipt['blockNumber']}")
    return tx_hash_hex, receipt


def _as_chain_error(description: str, e: Exception) -> ChainSubmissionError:
    if "MismatchedABI" in str(type(e)):
        logger.error(f"ABI mismatch during {description}: {e}. Check contract definition and arguments.")
    else:
        logger.error(f"{description} failed: {e}", exc_info=True)
    return ChainSubmissionError(str(e) or type(e).__name__)


# --- Collection Provisioning ---

def _create_collection_onchain() -> str:
    logger.info("Creating new SPG NFT collection for DeepShare...")
    contract = _contract("RegistrationWorkflows", config.REGISTRATION_WORKFLOWS_ADDRESS)
    init_params = {
        "name": config.COLLECTION_NAME,
        "symbol": config.COLLECTION_SYMBOL,
        "baseURI": "",
        "contractURI": "",
        "maxSupply": MAX_COLLECTION_SUPPLY,
        "mintFee": 0,
        "mintFeeToken": ZERO_ADDRESS,
        "mintFeeRecipient": ZERO_ADDRESS,
        "owner": account.address,
        "mintOpen": True,
        "isPublicMinting": False, # Only the server wallet mints
    }
    try:
        tx_hash, receipt = _send_transaction(contract.functions.createCollection(init_params), "createCollection")
        events = contract.events.CollectionCreated().process_receipt(receipt, errors=DISCARD)
    except ChainSubmissionError:
        raise
    except Exception as e:
        raise _as_chain_error("Collection creation", e) from e

    if not events:
        raise ChainSubmissionError(f"createCollection transaction {tx_hash} emitted no CollectionCreated event")
    address = events[0]["args"]["spgNftContract"]
    logger.info(f"Collection created: {address} (transaction {tx_hash})")
    return address


def get_or_create_collection() -> str:
    """Returns the SPG NFT collection address, creating the collection on first use."""
    _require_client()
    return collection_store.get_or_create(chain_id, account.address, _create_collection_onchain)


# --- IP Asset Registration ---

def commercial_remix_terms(minting_fee_wei: int, commercial_rev_share: int) -> Dict[str, Any]:
    """PIL commercial-remix terms settled in the configured currency token."""
    return {
        "transferable": True,
        "royaltyPolicy": Web3.to_checksum_address(config.ROYALTY_POLICY_LAP_ADDRESS),
        "defaultMintingFee": minting_fee_wei,
        "expiration": 0,
        "commercialUse": True,
        "commercialAttribution": True,
        "commercializerChecker": ZERO_ADDRESS,
        "commercializerCheckerData": b"",
        "commercialRevShare": commercial_rev_share * REV_SHARE_SCALE,
        "commercialRevCeiling": 0,
        "derivativesAllowed": True,
        "derivativesAttribution": True,
        "derivativesApproval": False,
        "derivativesReciprocal": True,
        "derivativeRevCeiling": 0,
        "currency": Web3.to_checksum_address(config.WIP_TOKEN_ADDRESS),
        "uri": config.COMMERCIAL_REMIX_TERMS_URI,
    }


def default_licensing_config() -> Dict[str, Any]:
    return {
        "isSet": False,
        "mintingFee": 0,
        "licensingHook": ZERO_ADDRESS,
        "hookData": b"",
        "commercialRevShare": 0,
        "disabled": False,
        "expectMinimumGroupRewardShare": 0,
        "expectGroupRewardPool": ZERO_ADDRESS,
    }


def register_ip_asset(
    spg_nft_contract: str,
    ip_metadata_cid: str,
    ip_metadata_hash: str,
    nft_metadata_cid: str,
    nft_metadata_hash: str,
    license_params: LicenseParameters,
) -> LedgerRegistration:
    """
    Mints a token into the collection, registers it as an IP asset with both
    metadata documents bound, and attaches commercial-remix license terms,
    all in one transaction.

    Raises ChainSubmissionError on any failure; nothing is retried.
    """
    _require_client()
    logger.info(
        f"Registering IP asset in collection {spg_nft_contract}: ip metadata {ip_metadata_cid}, "
        f"nft metadata {nft_metadata_cid}, fee {license_params.minting_fee} IP, rev share {license_params.commercial_rev_share}%"
    )

    ip_metadata = {
        "ipMetadataURI": public_gateway_url(ip_metadata_cid),
        "ipMetadataHash": HexBytes(ip_metadata_hash),
        "nftMetadataURI": public_gateway_url(nft_metadata_cid),
        "nftMetadataHash": HexBytes(nft_metadata_hash),
    }
    license_terms_data = [{
        "terms": commercial_remix_terms(license_params.minting_fee_wei, license_params.commercial_rev_share),
        "licensingConfig": default_licensing_config(),
    }]

    try:
        workflows = _contract("LicenseAttachmentWorkflows", config.LICENSE_ATTACHMENT_WORKFLOWS_ADDRESS)
        contract_function = workflows.functions.mintAndRegisterIpAndAttachPILTerms(
            Web3.to_checksum_address(spg_nft_contract),
            account.address,
            ip_metadata,
            license_terms_data,
            True, # allowDuplicates
        )
        tx_hash, receipt = _send_transaction(contract_function, "mintAndRegisterIpAndAttachPILTerms")

        registry = _contract("IPAssetRegistry", config.IP_ASSET_REGISTRY_ADDRESS)
        licensing = _contract("LicensingModule", config.LICENSING_MODULE_ADDRESS)
        registered = registry.events.IPRegistered().process_receipt(receipt, errors=DISCARD)
        attached = licensing.events.LicenseTermsAttached().process_receipt(receipt, errors=DISCARD)
    except ChainSubmissionError:
        raise
    except Exception as e:
        raise _as_chain_error("IP asset registration", e) from e

    registered = [
        event for event in registered
        if str(event["args"]["tokenContract"]).lower() == spg_nft_contract.lower()
    ] or registered
    if not registered:
        raise ChainSubmissionError(f"Registration transaction {tx_hash} emitted no IPRegistered event")

    ip_id = registered[0]["args"]["ipId"]
    token_id = registered[0]["args"]["tokenId"]
    license_terms_ids = [
        event["args"]["licenseTermsId"] for event in attached
        if str(event["args"]["ipId"]).lower() == str(ip_id).lower()
    ]

    logger.info(f"IP Asset registered: {ip_id} (token {token_id}, license terms {license_terms_ids}, transaction {tx_hash})")
    return LedgerRegistration(ip_id=ip_id, token_id=token_id, license_terms_ids=license_terms_ids, tx_hash=tx_hash)
