"""Avatar uploads to Cloudinary through its signed REST upload API."""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

from ..config import Settings
from ..domain.errors import AssetUploadError

logger = logging.getLogger(__name__)

UPLOAD_URL_TEMPLATE = "https://api.cloudinary.com/v1_1/{cloud_name}/image/upload"


@dataclass(slots=True, frozen=True)
class UploadedAsset:
    """Identifier and public URL of a stored image."""

    asset_id: str
    url: str


def sign_params(params: dict[str, Any], api_secret: str) -> str:
    """Return the Cloudinary request signature for ``params``.

    Parameters are sorted by name, joined as ``key=value`` pairs with ``&``,
    suffixed with the API secret and SHA-1 hashed.
    """
    to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params) if params[key] not in (None, ""))
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


class CloudinaryUploader:
    """Uploads raw images (data URIs or remote URLs) into a Cloudinary folder."""

    def __init__(
        self,
        *,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        """Store account credentials; ``client`` may be supplied for connection reuse."""
        self._upload_url = UPLOAD_URL_TEMPLATE.format(cloud_name=cloud_name)
        self._api_key = api_key
        self._api_secret = api_secret
        self._client = client or httpx.Client(timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings) -> "CloudinaryUploader":
        return cls(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
            timeout=settings.cloudinary_timeout_seconds,
        )

    def close(self) -> None:
        self._client.close()

    def upload(self, image: str, *, folder: str, width: int, crop: str) -> UploadedAsset:
        """Upload ``image`` scaled to ``width`` and return the stored asset reference.

        Raises
        ------
        AssetUploadError
            On transport failure, a non-2xx response, or a malformed body.
        """
        params: dict[str, Any] = {
            "folder": folder,
            "timestamp": int(time.time()),
            "transformation": f"c_{crop},w_{width}",
        }
        data = {
            **params,
            "api_key": self._api_key,
            "signature": sign_params(params, self._api_secret),
            "file": image,
        }

        try:
            response = self._client.post(self._upload_url, data=data)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            logger.warning("avatar upload rejected with status %s", exc.response.status_code)
            raise AssetUploadError(_error_message(exc.response)) from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("avatar upload failed: %s", exc)
            raise AssetUploadError("avatar upload failed") from exc

        try:
            asset = UploadedAsset(asset_id=body["public_id"], url=body["secure_url"])
        except (KeyError, TypeError) as exc:
            raise AssetUploadError("avatar upload returned an unexpected response") from exc
        logger.info("avatar uploaded as %s", asset.asset_id)
        return asset


def _error_message(response: httpx.Response) -> str:
    try:
        return str(response.json()["error"]["message"])
    except (ValueError, KeyError, TypeError):
        return f"avatar upload failed with status {response.status_code}"
