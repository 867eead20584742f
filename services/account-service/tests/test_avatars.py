from __future__ import annotations

import hashlib
from urllib.parse import parse_qs

import httpx
import pytest

from app.domain.errors import AssetUploadError
from app.storage.avatars import CloudinaryUploader, sign_params

UPLOAD_URL = "https://api.cloudinary.com/v1_1/demo/image/upload"


def _uploader(handler) -> CloudinaryUploader:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return CloudinaryUploader(cloud_name="demo", api_key="key-123", api_secret="shh", client=client)


def test_sign_params_sorts_and_appends_secret():
    params = {"timestamp": 1700000000, "folder": "avatars", "transformation": "c_scale,w_150"}
    expected = hashlib.sha1(
        b"folder=avatars&timestamp=1700000000&transformation=c_scale,w_150shh"
    ).hexdigest()
    assert sign_params(params, "shh") == expected


def test_upload_posts_signed_request_and_returns_asset():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["form"] = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        return httpx.Response(
            200,
            json={"public_id": "avatars/abc123", "secure_url": "https://res.cloudinary.com/demo/avatars/abc123.png"},
        )

    asset = _uploader(handler).upload("data:image/png;base64,AAAA", folder="avatars", width=150, crop="scale")

    assert asset.asset_id == "avatars/abc123"
    assert asset.url == "https://res.cloudinary.com/demo/avatars/abc123.png"
    form = captured["form"]
    assert captured["url"] == UPLOAD_URL
    assert form["folder"] == "avatars"
    assert form["transformation"] == "c_scale,w_150"
    assert form["api_key"] == "key-123"
    assert form["file"] == "data:image/png;base64,AAAA"
    signed = {key: form[key] for key in ("folder", "timestamp", "transformation")}
    assert form["signature"] == sign_params(signed, "shh")


def test_rejected_upload_surfaces_provider_message():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"message": "Invalid image file"}})

    with pytest.raises(AssetUploadError) as excinfo:
        _uploader(handler).upload("garbage", folder="avatars", width=150, crop="scale")
    assert excinfo.value.message == "Invalid image file"
    assert excinfo.value.status_code == 500


def test_transport_failure_raises_upload_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(AssetUploadError):
        _uploader(handler).upload("data:image/png;base64,AAAA", folder="avatars", width=150, crop="scale")


def test_unexpected_body_raises_upload_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "ok"})

    with pytest.raises(AssetUploadError):
        _uploader(handler).upload("data:image/png;base64,AAAA", folder="avatars", width=150, crop="scale")
