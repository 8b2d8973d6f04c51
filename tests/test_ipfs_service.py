"""Tests for IPFS fetch and publish."""

from unittest.mock import MagicMock

import pytest
import requests

from deepshare_ip import config
from deepshare_ip.exceptions import ContentFetchError, PublishError
from deepshare_ip.models.metadata_models import NftMetadata
from deepshare_ip.services import ipfs_service

from conftest import FakeResponse


class TestFetchJson:
    """Gateway fetch of metadata payloads."""

    def test_fetch_success(self, monkeypatch):
        get = MagicMock(return_value=FakeResponse(json_data={"data": {"depthData": {"points": 3}}}))
        monkeypatch.setattr(requests, "get", get)

        payload = ipfs_service.fetch_json("Qmeta1")

        assert payload == {"data": {"depthData": {"points": 3}}}
        get.assert_called_once_with("https://gateway.test/ipfs/Qmeta1", timeout=30)

    def test_http_error_raises_content_fetch_error(self, monkeypatch):
        monkeypatch.setattr(requests, "get", MagicMock(return_value=FakeResponse(status_code=404, text="not found")))

        with pytest.raises(ContentFetchError) as exc_info:
            ipfs_service.fetch_json("Qmissing")

        assert exc_info.value.cid == "Qmissing"
        assert isinstance(exc_info.value.cause, requests.exceptions.HTTPError)

    def test_network_error_raises_content_fetch_error(self, monkeypatch):
        monkeypatch.setattr(requests, "get", MagicMock(side_effect=requests.exceptions.Timeout("timed out")))

        with pytest.raises(ContentFetchError, match="timed out"):
            ipfs_service.fetch_json("Qslow")

    def test_non_json_body_raises_content_fetch_error(self, monkeypatch):
        monkeypatch.setattr(requests, "get", MagicMock(return_value=FakeResponse(text="<html>")))

        with pytest.raises(ContentFetchError):
            ipfs_service.fetch_json("Qhtml")


class TestExtractDepthData:

    def test_nested_depth_data(self):
        assert ipfs_service.extract_depth_data({"data": {"depthData": {"points": 3}}}) == {"points": 3}

    def test_whole_payload_without_nested_field(self):
        payload = {"data": {"other": 1}}
        assert ipfs_service.extract_depth_data(payload) is payload

    def test_empty_nested_depth_data_is_kept(self):
        assert ipfs_service.extract_depth_data({"data": {"depthData": {}}}) == {}

    def test_null_nested_depth_data_falls_back_to_payload(self):
        payload = {"data": {"depthData": None}}
        assert ipfs_service.extract_depth_data(payload) is payload

    def test_non_dict_payload(self):
        assert ipfs_service.extract_depth_data([1, 2]) == [1, 2]


class TestPublishJson:
    """Pinata pinning."""

    def test_publish_returns_cid(self, monkeypatch):
        post = MagicMock(return_value=FakeResponse(json_data={"IpfsHash": "QmNew", "PinSize": 10}))
        monkeypatch.setattr(requests, "post", post)

        cid = ipfs_service.publish_json({"a": 1}, name="doc")

        assert cid == "QmNew"
        args, kwargs = post.call_args
        assert args[0] == "https://pinata.test/pinning/pinJSONToIPFS"
        assert kwargs["json"] == {"pinataContent": {"a": 1}, "pinataMetadata": {"name": "doc"}}
        assert kwargs["headers"]["pinata_api_key"] == "pinata-key"
        assert kwargs["headers"]["pinata_secret_api_key"] == "pinata-secret"

    def test_publish_drops_absent_fields_from_models(self, monkeypatch):
        post = MagicMock(return_value=FakeResponse(json_data={"IpfsHash": "QmNft"}))
        monkeypatch.setattr(requests, "post", post)
        doc = NftMetadata(name="n", description="d", image="ipfs://x", external_url="https://g/ipfs/x")

        ipfs_service.publish_json(doc)

        assert "animation_url" not in post.call_args.kwargs["json"]["pinataContent"]

    def test_missing_ipfs_hash_raises(self, monkeypatch):
        monkeypatch.setattr(requests, "post", MagicMock(return_value=FakeResponse(json_data={"error": "nope"})))

        with pytest.raises(PublishError, match="IpfsHash"):
            ipfs_service.publish_json({"a": 1})

    def test_http_error_raises(self, monkeypatch):
        monkeypatch.setattr(requests, "post", MagicMock(return_value=FakeResponse(status_code=401, text="bad key")))

        with pytest.raises(PublishError):
            ipfs_service.publish_json({"a": 1})

    def test_network_error_raises(self, monkeypatch):
        monkeypatch.setattr(requests, "post", MagicMock(side_effect=requests.exceptions.ConnectionError("down")))

        with pytest.raises(PublishError, match="down"):
            ipfs_service.publish_json({"a": 1})

    def test_missing_credentials_raise_without_request(self, monkeypatch):
        post = MagicMock()
        monkeypatch.setattr(requests, "post", post)
        monkeypatch.setattr(config, "PINATA_API_KEY", None)

        with pytest.raises(PublishError):
            ipfs_service.publish_json({"a": 1})
        post.assert_not_called()


def test_gateway_forms_are_distinct():
    assert ipfs_service.ipfs_uri("Qx") == "ipfs://Qx"
    assert ipfs_service.gateway_url("Qx") == "https://gateway.test/ipfs/Qx"
    assert ipfs_service.public_gateway_url("Qx") == "https://ipfs.test/ipfs/Qx"
