"""Shared fixtures: isolated configuration and mocked external collaborators."""

import json
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import requests

from deepshare_ip import collection_store, config, reconciliation_store
from deepshare_ip.models.metadata_models import IpMetadata
from deepshare_ip.models.registration_models import (
    LedgerRegistration,
    ReconciliationOutcome,
    ReconciliationStatus,
)
from deepshare_ip.services import ipfs_service, records_service, story_service

IP_ID = "0x1234567890AbcdEF1234567890aBcdef12345678"
NFT_CONTRACT = "0x00000000000000000000000000000000000000C0"
TX_HASH = "0x" + "ab" * 32
IP_METADATA_CID = "QmIpMetadata"
NFT_METADATA_CID = "QmNftMetadata"


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code=200, json_data=None, text=None):
        self.status_code = status_code
        self._json = json_data
        if text is None:
            text = "" if json_data is None else json.dumps(json_data)
        self.text = text
        self.content = text.encode("utf-8")

    def json(self):
        if self._json is None:
            raise ValueError("No JSON object could be decoded")
        return self._json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error", response=self)


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Pin every setting the services read so tests never depend on a local .env."""
    monkeypatch.setattr(config, "IPFS_GATEWAY", "https://gateway.test")
    monkeypatch.setattr(config, "PUBLIC_IPFS_GATEWAY", "https://ipfs.test")
    monkeypatch.setattr(config, "PINATA_API_URL", "https://pinata.test")
    monkeypatch.setattr(config, "PINATA_API_KEY", "pinata-key")
    monkeypatch.setattr(config, "PINATA_SECRET_KEY", "pinata-secret")
    monkeypatch.setattr(config, "SUPABASE_URL", "https://db.test")
    monkeypatch.setattr(config, "SUPABASE_KEY", "service-role-key")
    monkeypatch.setattr(config, "SUPABASE_TABLE", "images")
    monkeypatch.setattr(config, "EXPLORER_URL", "https://explorer.test")
    monkeypatch.setattr(config, "TX_EXPLORER_URL", "https://scan.test")
    monkeypatch.setattr(config, "DEFAULT_MINTING_FEE", "0.1")
    monkeypatch.setattr(config, "DEFAULT_COMMERCIAL_REV_SHARE", 10)
    monkeypatch.setattr(config, "SPG_NFT_CONTRACT", None)
    monkeypatch.setattr(config, "COLLECTION_STATE_FILE", str(tmp_path / "collection_state.json"))
    collection_store.reset()
    reconciliation_store.clear()
    yield
    collection_store.reset()
    reconciliation_store.clear()


def _fake_publish(document, name=None):
    return IP_METADATA_CID if isinstance(document, IpMetadata) else NFT_METADATA_CID


def _updated_outcome(image_cid, ip_url, tx_hash):
    return ReconciliationOutcome(
        status=ReconciliationStatus.UPDATED,
        image_cid=image_cid,
        recorded_at=datetime.now(timezone.utc),
    )


@pytest.fixture
def pipeline(monkeypatch):
    """Replaces every external collaborator of the registration pipeline with a mock."""
    mocks = SimpleNamespace(
        fetch_json=MagicMock(return_value={"data": {"depthData": {"points": 3}}}),
        publish_json=MagicMock(side_effect=_fake_publish),
        get_or_create_collection=MagicMock(return_value=NFT_CONTRACT),
        register_ip_asset=MagicMock(return_value=LedgerRegistration(
            ip_id=IP_ID, token_id=7, license_terms_ids=[42], tx_hash=TX_HASH,
        )),
        reconcile_registration=MagicMock(side_effect=_updated_outcome),
    )
    monkeypatch.setattr(ipfs_service, "fetch_json", mocks.fetch_json)
    monkeypatch.setattr(ipfs_service, "publish_json", mocks.publish_json)
    monkeypatch.setattr(story_service, "get_or_create_collection", mocks.get_or_create_collection)
    monkeypatch.setattr(story_service, "register_ip_asset", mocks.register_ip_asset)
    monkeypatch.setattr(records_service, "reconcile_registration", mocks.reconcile_registration)
    mocks.external = [
        mocks.fetch_json,
        mocks.publish_json,
        mocks.get_or_create_collection,
        mocks.register_ip_asset,
        mocks.reconcile_registration,
    ]
    return mocks
