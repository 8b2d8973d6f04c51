import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from web3 import Web3

from .. import config
from .. import reconciliation_store
from ..exceptions import ChainSubmissionError, ContentFetchError, RegistrationError, ValidationError
from ..models.registration_models import LicenseParameters, RegistrationRequest, RegistrationResult
from . import ipfs_service, metadata_builder, records_service, story_service

logger = logging.getLogger(__name__)

NO_DEPTH_PLACEHOLDER = {"note": "No depth metadata provided"}
WEI_DECIMALS = 18


class PipelineStage(str, Enum):
    VALIDATE = "validate"
    RESOLVE_METADATA = "resolve_metadata"
    PROVISION_COLLECTION = "provision_collection"
    PUBLISH_ASSET_METADATA = "publish_asset_metadata"
    PUBLISH_COLLECTIBLE_METADATA = "publish_collectible_metadata"
    REGISTER_ON_CHAIN = "register_on_chain"
    RECONCILE = "reconcile"
    RESPOND = "respond"


def _decimal_places(value: Decimal) -> int:
    """Significant fractional digits, ignoring trailing zeros."""
    _, digits, exponent = value.as_tuple()
    digits = list(digits)
    while exponent < 0 and digits and digits[-1] == 0:
        digits.pop()
        exponent += 1
    if not digits:
        return 0
    return max(0, -exponent)


def resolve_license_parameters(
    minting_fee: str | int | float | None,
    commercial_rev_share: int | None,
    default_minting_fee: str,
    default_rev_share: int,
) -> LicenseParameters:
    """
    Merges per-request license overrides with the process defaults.

    A missing (None or empty) override falls back to the default; "0" is a
    real zero fee. Raises ValidationError for unparsable or negative fees and
    revenue shares outside 0-100.
    """
    fee_source = default_minting_fee if minting_fee is None or str(minting_fee).strip() == "" else minting_fee
    try:
        fee = Decimal(str(fee_source).strip())
    except InvalidOperation:
        raise ValidationError("Minting fee must be a decimal number", {"provided": fee_source})
    if not fee.is_finite() or fee < 0:
        raise ValidationError("Minting fee must be a non-negative number", {"provided": str(fee_source)})
    if _decimal_places(fee) > WEI_DECIMALS:
        raise ValidationError("Minting fee has more than 18 decimal places", {"provided": str(fee_source)})
    try:
        fee_wei = int(Web3.to_wei(fee, "ether"))
    except ValueError as e:
        raise ValidationError(f"Minting fee is out of range: {e}", {"provided": str(fee_source)})

    rev_share = default_rev_share if commercial_rev_share is None else commercial_rev_share
    if rev_share < 0 or rev_share > 100:
        raise ValidationError(
            "Commercial revenue share must be between 0 and 100",
            {"provided": rev_share},
        )

    return LicenseParameters(minting_fee=fee, minting_fee_wei=fee_wei, commercial_rev_share=rev_share)


def validate_request(request: RegistrationRequest) -> LicenseParameters:
    """Rejects out-of-contract requests before any external system is touched."""
    if not (request.imageContentId or "").strip() or not (request.deviceAddress or "").strip():
        raise ValidationError("Missing required fields", {"required": ["imageContentId", "deviceAddress"]})

    return resolve_license_parameters(
        request.mintingFee,
        request.commercialRevShare,
        config.DEFAULT_MINTING_FEE,
        config.DEFAULT_COMMERCIAL_REV_SHARE,
    )


def _is_absent(value: Any) -> bool:
    # An empty string counts as "not provided", like a missing field
    return value is None or (isinstance(value, str) and value == "")


def resolve_depth_metadata(metadata_cid: str | None, depth_metadata: Any) -> Any:
    """
    Inline depth metadata wins; otherwise the metadata CID is fetched from
    IPFS. A failed fetch degrades to a placeholder instead of failing.
    """
    if _is_absent(depth_metadata) and metadata_cid:
        logger.info(f"Fetching metadata from IPFS: {metadata_cid}")
        try:
            depth_metadata = ipfs_service.extract_depth_data(ipfs_service.fetch_json(metadata_cid))
        except ContentFetchError as e:
            logger.warning(f"Could not fetch metadata CID {metadata_cid}, will use basic info: {e}")
            depth_metadata = {"metadataContentId": metadata_cid}

    if _is_absent(depth_metadata):
        depth_metadata = dict(NO_DEPTH_PLACEHOLDER)
    return depth_metadata


def explorer_url(ip_id: str) -> str:
    return f"{config.EXPLORER_URL}/ipa/{ip_id}"


def transaction_url(tx_hash: str) -> str:
    return f"{config.TX_EXPLORER_URL}/tx/{tx_hash}"


def register_capture(request: RegistrationRequest, now: datetime | None = None) -> RegistrationResult:
    """
    Runs the registration pipeline for one capture:

        validate -> resolve metadata -> provision collection -> publish IP
        metadata -> publish NFT metadata -> register on chain -> reconcile

    The first fatal error aborts the run and is re-raised with ``stage`` set.
    Already published documents and minted tokens are never rolled back.
    Reconciliation problems are recorded, never raised.
    """
    stage = PipelineStage.VALIDATE
    try:
        license_params = validate_request(request)
        image_cid = request.imageContentId.strip()
        metadata_cid = (request.metadataContentId or "").strip() or None
        device_address = request.deviceAddress.strip()

        logger.info(
            f"Registering IP for image {image_cid} from device {device_address}: "
            f"minting fee {license_params.minting_fee} IP, revenue share {license_params.commercial_rev_share}%"
        )

        stage = PipelineStage.RESOLVE_METADATA
        depth_metadata = resolve_depth_metadata(metadata_cid, request.depthMetadata)
        documents = metadata_builder.build_documents(
            image_cid, metadata_cid, depth_metadata, device_address, license_params, now=now
        )

        stage = PipelineStage.PROVISION_COLLECTION
        nft_contract = story_service.get_or_create_collection()

        stage = PipelineStage.PUBLISH_ASSET_METADATA
        ip_metadata_cid = ipfs_service.publish_json(documents.ip_metadata, name=f"deepshare-ip-{image_cid}")
        ip_metadata_hash = ipfs_service.content_digest(documents.ip_metadata)

        stage = PipelineStage.PUBLISH_COLLECTIBLE_METADATA
        nft_metadata_cid = ipfs_service.publish_json(documents.nft_metadata, name=f"deepshare-nft-{image_cid}")
        nft_metadata_hash = ipfs_service.content_digest(documents.nft_metadata)
        logger.info(f"IP metadata uploaded: {ip_metadata_cid}, NFT metadata uploaded: {nft_metadata_cid}")

        stage = PipelineStage.REGISTER_ON_CHAIN
        try:
            registration = story_service.register_ip_asset(
                nft_contract,
                ip_metadata_cid,
                ip_metadata_hash,
                nft_metadata_cid,
                nft_metadata_hash,
                license_params,
            )
        except ChainSubmissionError:
            logger.error(
                f"On-chain registration failed for {image_cid}; published metadata "
                f"{ip_metadata_cid} and {nft_metadata_cid} are left unreferenced"
            )
            raise

        stage = PipelineStage.RECONCILE
        ip_explorer_url = explorer_url(registration.ip_id)
        outcome = records_service.reconcile_registration(image_cid, ip_explorer_url, registration.tx_hash)
        reconciliation_store.record(outcome)

    except RegistrationError as e:
        e.stage = stage.value
        if not isinstance(e, ValidationError):
            logger.error(f"Registration for {request.imageContentId} failed at stage {stage.value}: {e}")
        raise

    return RegistrationResult(
        ipId=registration.ip_id,
        tokenId=str(registration.token_id) if registration.token_id is not None else None,
        licenseTermsIds=[str(term_id) for term_id in registration.license_terms_ids],
        txHash=registration.tx_hash,
        nftContract=nft_contract,
        imageUrl=ipfs_service.gateway_url(image_cid),
        imageCid=image_cid,
        metadataUrl=ipfs_service.gateway_url(metadata_cid or image_cid),
        metadataCid=metadata_cid,
        ipMetadataCid=ip_metadata_cid,
        ipMetadataUrl=ipfs_service.public_gateway_url(ip_metadata_cid),
        nftMetadataCid=nft_metadata_cid,
        nftMetadataUrl=ipfs_service.public_gateway_url(nft_metadata_cid),
        depthMetadata=depth_metadata,
        mintingFee=float(license_params.minting_fee),
        commercialRevShare=license_params.commercial_rev_share,
        explorerUrl=ip_explorer_url,
        transactionUrl=transaction_url(registration.tx_hash),
        reconciliation=outcome.status,
    )
