"""Tests for the provenance document builder."""

import hashlib
import json
from datetime import datetime, timezone
from decimal import Decimal

import pydantic
import pytest

from deepshare_ip.models.metadata_models import IpCreator, IpMetadata
from deepshare_ip.models.registration_models import LicenseParameters
from deepshare_ip.services import ipfs_service
from deepshare_ip.services.metadata_builder import build_documents, cid_digest, iso_timestamp

NOW = datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc) # epoch 1700000000


@pytest.fixture
def license_params():
    return LicenseParameters(minting_fee=Decimal("0.2"), minting_fee_wei=2 * 10**17, commercial_rev_share=15)


def attributes(ip_metadata):
    return {a.key: a.value for a in ip_metadata.attributes}


def traits(nft_metadata):
    return {a.trait_type: a.value for a in nft_metadata.attributes}


class TestDigests:
    """Hash fields over CID strings."""

    def test_image_hash_is_sha256_of_cid_string(self, license_params):
        docs = build_documents("Qimg1", None, {}, "0xABC", license_params, now=NOW)
        expected = "0x" + hashlib.sha256(b"Qimg1").hexdigest()
        assert docs.ip_metadata.imageHash == expected

    def test_image_hash_is_deterministic(self, license_params):
        first = build_documents("Qimg1", None, {}, "0xABC", license_params)
        second = build_documents("Qimg1", None, {"other": True}, "0xDEF", license_params)
        assert first.ip_metadata.imageHash == second.ip_metadata.imageHash == cid_digest("Qimg1")

    def test_media_hash_uses_metadata_cid(self, license_params):
        docs = build_documents("Qimg1", "Qmeta1", {}, "0xABC", license_params, now=NOW)
        assert docs.ip_metadata.mediaHash == "0x" + hashlib.sha256(b"Qmeta1").hexdigest()

    def test_media_hash_falls_back_to_image_cid(self, license_params):
        docs = build_documents("Qimg1", None, {}, "0xABC", license_params, now=NOW)
        assert docs.ip_metadata.mediaHash == docs.ip_metadata.imageHash


class TestIpMetadata:
    """Story Protocol IP metadata document."""

    def test_without_metadata_cid(self, license_params):
        ip = build_documents("Qimg1", None, {"note": "x"}, "0xABC", license_params, now=NOW).ip_metadata

        assert ip.title == "DeepShare Evidence - 1700000000000"
        assert ip.description == "Evidence capture. Device: 0xABC"
        assert ip.createdAt == "1700000000"
        assert ip.image == "ipfs://Qimg1"
        assert ip.mediaUrl == "ipfs://Qimg1"
        assert ip.mediaType == "image/jpeg"
        assert ip.creators == [IpCreator(name="DeepShare Device", address="0xABC", contributionPercent=100)]

        attrs = attributes(ip)
        assert attrs["MetadataCID"] == "N/A"
        assert attrs["DepthDataURL"] == "N/A"
        assert attrs["Device"] == "0xABC"
        assert attrs["ImageCID"] == "Qimg1"
        assert attrs["MintingFee"] == "0.2"
        assert attrs["CommercialRevShare"] == "15"

    def test_with_metadata_cid(self, license_params):
        ip = build_documents("Qimg1", "Qmeta1", {"points": 3}, "0xABC", license_params, now=NOW).ip_metadata

        assert ip.mediaUrl == "ipfs://Qmeta1"
        assert ip.mediaType == "application/json"
        assert ip.description == (
            "Evidence capture with depth mapping. Full depth data stored at: https://gateway.test/ipfs/Qmeta1"
        )
        attrs = attributes(ip)
        assert attrs["MetadataCID"] == "Qmeta1"
        assert attrs["DepthDataURL"] == "https://gateway.test/ipfs/Qmeta1"
        assert attrs["DepthMetadata"] == '{"points":3}'

    def test_documents_embed_ipfs_scheme_not_gateway(self, license_params):
        docs = build_documents("Qimg1", "Qmeta1", {}, "0xABC", license_params, now=NOW)
        assert docs.ip_metadata.image.startswith("ipfs://")
        assert docs.nft_metadata.image.startswith("ipfs://")
        assert docs.nft_metadata.animation_url.startswith("ipfs://")
        assert docs.nft_metadata.external_url.startswith("https://gateway.test/ipfs/")

    def test_creator_contributions_must_sum_to_100(self):
        with pytest.raises(pydantic.ValidationError):
            IpMetadata(
                title="t", description="d", createdAt="0",
                creators=[IpCreator(name="a", address="0x1", contributionPercent=60)],
                image="ipfs://x", imageHash="0x", mediaUrl="ipfs://x", mediaHash="0x", mediaType="image/jpeg",
            )


class TestNftMetadata:
    """OpenSea-compatible NFT metadata document."""

    def test_without_metadata_cid(self, license_params):
        nft = build_documents("Qimg1", None, {}, "0xABC", license_params, now=NOW).nft_metadata

        assert nft.name == "DeepShare Evidence 1700000000000"
        assert nft.description == "Evidence captured with depth mapping technology"
        assert nft.animation_url is None
        assert nft.external_url == "https://gateway.test/ipfs/Qimg1"
        assert traits(nft) == {
            "Platform": "DeepShare",
            "Device": "0xABC",
            "Timestamp": "2023-11-14T22:13:20.000Z",
            "Has Depth Data": "No",
            "Image CID": "Qimg1",
            "Metadata CID": "N/A",
        }

    def test_absent_animation_url_is_not_serialized(self, license_params):
        nft = build_documents("Qimg1", None, {}, "0xABC", license_params, now=NOW).nft_metadata
        assert "animation_url" not in json.loads(ipfs_service.serialize_document(nft))

    def test_with_metadata_cid(self, license_params):
        nft = build_documents("Qimg1", "Qmeta1", {}, "0xABC", license_params, now=NOW).nft_metadata

        assert nft.animation_url == "ipfs://Qmeta1"
        assert nft.external_url == "https://gateway.test/ipfs/Qmeta1"
        assert traits(nft)["Has Depth Data"] == "Yes"
        assert traits(nft)["Metadata CID"] == "Qmeta1"


class TestDocumentDigest:
    """Digests over the serialized documents."""

    def test_digest_matches_compact_serialization(self, license_params):
        docs = build_documents("Qimg1", None, {}, "0xABC", license_params, now=NOW)
        serialized = ipfs_service.serialize_document(docs.ip_metadata)
        assert ipfs_service.content_digest(docs.ip_metadata) == "0x" + hashlib.sha256(serialized.encode()).hexdigest()

    def test_documents_have_distinct_digests(self, license_params):
        docs = build_documents("Qimg1", None, {}, "0xABC", license_params, now=NOW)
        assert ipfs_service.content_digest(docs.ip_metadata) != ipfs_service.content_digest(docs.nft_metadata)

    def test_digest_is_stable_for_fixed_time(self, license_params):
        first = build_documents("Qimg1", None, {}, "0xABC", license_params, now=NOW)
        second = build_documents("Qimg1", None, {}, "0xABC", license_params, now=NOW)
        assert ipfs_service.content_digest(first.ip_metadata) == ipfs_service.content_digest(second.ip_metadata)


def test_iso_timestamp_uses_z_suffix():
    assert iso_timestamp(NOW) == "2023-11-14T22:13:20.000Z"
