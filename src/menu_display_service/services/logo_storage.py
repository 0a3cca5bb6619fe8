"""Logo uploads to Supabase Storage."""

import logging
import time
from pathlib import PurePosixPath

import httpx
from supabase import AsyncClient, StorageException

from menu_display_service.observability import traced
from menu_display_service.services.exceptions import MenuGatewayError

logger = logging.getLogger(__name__)

DEFAULT_LOGO_BUCKET = "logos"


def build_logo_path(restaurant_id: str, filename: str, timestamp_ms: int | None = None) -> str:
    """Build the namespaced storage path ``<restaurant_id>/<timestamp>.<ext>``.

    Args:
        restaurant_id: Restaurant the logo belongs to
        filename: Original upload filename, used only for its extension
        timestamp_ms: Epoch milliseconds (defaults to now)

    Returns:
        Object path inside the logo bucket
    """
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    extension = PurePosixPath(filename).suffix.lstrip(".") or "bin"
    return f"{restaurant_id}/{timestamp_ms}.{extension}"


class LogoStorage:
    """Stores logo files in a public bucket and hands back their URL."""

    def __init__(self, client: AsyncClient, bucket: str = DEFAULT_LOGO_BUCKET) -> None:
        self.client = client
        self.bucket = bucket

    @traced("storage.upload_logo")
    async def upload(
        self,
        restaurant_id: str,
        filename: str,
        content: bytes,
        content_type: str | None = None,
    ) -> str:
        """Upload a logo and return its public URL.

        Raises:
            MenuGatewayError: If the upload fails
        """
        path = build_logo_path(restaurant_id, filename)
        file_options = {"upsert": "true"}
        if content_type:
            file_options["content-type"] = content_type

        bucket = self.client.storage.from_(self.bucket)
        try:
            await bucket.upload(path, content, file_options=file_options)
            public_url: str = await bucket.get_public_url(path)
        except (StorageException, httpx.HTTPError) as e:
            raise MenuGatewayError(f"Failed to upload logo to {self.bucket}/{path}: {e}") from e

        logger.info(f"Uploaded logo for restaurant {restaurant_id} to {self.bucket}/{path}")
        return public_url
