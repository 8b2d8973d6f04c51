"""
Builds the two provenance documents published for every capture:

- the Story Protocol IP metadata (``IpMetadata``), and
- the OpenSea-style NFT metadata (``NftMetadata``).

Everything here is a pure function of its inputs except the wall-clock
timestamps embedded in titles and attributes, which callers can pin via ``now``.
"""
import hashlib
import json
from datetime import datetime, timezone
from typing import Any, NamedTuple

from ..models.metadata_models import IpAttribute, IpCreator, IpMetadata, NftAttribute, NftMetadata
from ..models.registration_models import LicenseParameters
from .ipfs_service import gateway_url, ipfs_uri

PLATFORM = "DeepShare"
CREATOR_NAME = "DeepShare Device"
NOT_AVAILABLE = "N/A"


class MetadataDocuments(NamedTuple):
    ip_metadata: IpMetadata
    nft_metadata: NftMetadata


def cid_digest(cid: str) -> str:
    """0x-prefixed SHA-256 of the CID string itself (not of the content it addresses)."""
    return f"0x{hashlib.sha256(cid.encode('utf-8')).hexdigest()}"


def iso_timestamp(moment: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a Z suffix, e.g. 2024-01-01T00:00:00.000Z."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_documents(
    image_cid: str,
    metadata_cid: str | None,
    depth_metadata: Any,
    device_address: str,
    license_params: LicenseParameters,
    now: datetime | None = None,
) -> MetadataDocuments:
    now = now or datetime.now(timezone.utc)
    epoch_ms = int(now.timestamp() * 1000)

    image_http_url = gateway_url(image_cid)
    metadata_http_url = gateway_url(metadata_cid) if metadata_cid else image_http_url

    # Full depth payload lives at the metadata CID when there is one
    media_cid = metadata_cid or image_cid

    if metadata_cid:
        ip_description = f"Evidence capture with depth mapping. Full depth data stored at: {metadata_http_url}"
    else:
        ip_description = f"Evidence capture. Device: {device_address}"

    ip_metadata = IpMetadata(
        title=f"{PLATFORM} Evidence - {epoch_ms}",
        description=ip_description,
        createdAt=str(epoch_ms // 1000),
        creators=[IpCreator(name=CREATOR_NAME, address=device_address, contributionPercent=100)],
        image=ipfs_uri(image_cid),
        imageHash=cid_digest(image_cid),
        mediaUrl=ipfs_uri(media_cid),
        mediaHash=cid_digest(media_cid),
        mediaType="application/json" if metadata_cid else "image/jpeg",
        attributes=[
            IpAttribute(key="Platform", value=PLATFORM),
            IpAttribute(key="Type", value="Evidence with Depth Mapping"),
            IpAttribute(key="Device", value=device_address),
            IpAttribute(key="ImageCID", value=image_cid),
            IpAttribute(key="MetadataCID", value=metadata_cid or NOT_AVAILABLE),
            IpAttribute(key="DepthDataURL", value=metadata_http_url if metadata_cid else NOT_AVAILABLE),
            IpAttribute(key="DepthMetadata", value=_compact_json(depth_metadata)),
            IpAttribute(key="MintingFee", value=str(license_params.minting_fee)),
            IpAttribute(key="CommercialRevShare", value=str(license_params.commercial_rev_share)),
        ],
    )

    nft_metadata = NftMetadata(
        name=f"{PLATFORM} Evidence {epoch_ms}",
        description=(
            "Evidence captured with depth mapping technology. Full depth data available in metadata."
            if metadata_cid
            else "Evidence captured with depth mapping technology"
        ),
        image=ipfs_uri(image_cid),
        animation_url=ipfs_uri(metadata_cid) if metadata_cid else None,
        external_url=metadata_http_url if metadata_cid else image_http_url,
        attributes=[
            NftAttribute(trait_type="Platform", value=PLATFORM),
            NftAttribute(trait_type="Device", value=device_address),
            NftAttribute(trait_type="Timestamp", value=iso_timestamp(now)),
            NftAttribute(trait_type="Has Depth Data", value="Yes" if metadata_cid else "No"),
            NftAttribute(trait_type="Image CID", value=image_cid),
            NftAttribute(trait_type="Metadata CID", value=metadata_cid or NOT_AVAILABLE),
        ],
    )

    return MetadataDocuments(ip_metadata=ip_metadata, nft_metadata=nft_metadata)


def _compact_json(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)
