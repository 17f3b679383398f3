"""
Drive Client - Google Drive v3 adapter for the remote archive.

Implements RemoteStoreInterface against the public Drive REST API using an
API key. Cameras upload into one folder per day below a root folder, with
file names like ``20240611-081500_1.jpg``.
"""

from urllib.parse import quote

import requests

from archive.interfaces import (
    ListingPage,
    RemoteFolder,
    RemoteItem,
    RemoteStoreInterface,
)
from core.exceptions import ListingError, TransientFetchError
from logging_config import get_logger

logger = get_logger(__name__)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
SHARED_DRIVE_PARAMS = {
    "supportsAllDrives": "true",
    "includeItemsFromAllDrives": "true",
    "corpora": "allDrives",
}


class DriveClient(RemoteStoreInterface):
    """
    Lists and downloads camera images stored in Google Drive.

    Features:
    - Date folders listed newest first (by name, YYYY-MM-DD sorts lexically)
    - Item pages ordered by createdTime desc
    - Optional backend proxy for browser-facing download URLs (cross-origin)
    - Thumbnail fallback when the full-size download fails
    """

    def __init__(
        self,
        api_key: str,
        root_folder_id: str,
        api_base: str = "https://www.googleapis.com/drive/v3",
        proxy_base_url: str | None = None,
        timeout: float = 15.0,
        session: requests.Session | None = None,
    ):
        self._api_key = api_key
        self._root_folder_id = root_folder_id
        self._api_base = api_base.rstrip("/")
        self._proxy_base = proxy_base_url.rstrip("/") if proxy_base_url else None
        self._timeout = timeout
        self._session = session or requests.Session()

        logger.info(
            f"DriveClient initialized (root={root_folder_id}, "
            f"api_key={'present' if api_key else 'missing'}, "
            f"proxy={'on' if self._proxy_base else 'off'})"
        )

    @classmethod
    def from_config(cls, config: dict) -> "DriveClient":
        return cls(
            api_key=config["DRIVE_API_KEY"],
            root_folder_id=config["DRIVE_ROOT_FOLDER_ID"],
            api_base=config["DRIVE_API_BASE"],
            proxy_base_url=config.get("DRIVE_PROXY_BASE_URL"),
            timeout=config["REMOTE_TIMEOUT"],
        )

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def _get_json(self, path: str, params: dict) -> dict:
        url = f"{self._api_base}/{path}"
        query = {**params, "key": self._api_key}
        try:
            response = self._session.get(url, params=query, timeout=self._timeout)
        except requests.RequestException as e:
            raise ListingError(f"Drive request failed: {e}") from e
        if not response.ok:
            raise ListingError(
                f"Drive request failed: {response.status_code} - {response.text[:200]}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise ListingError(f"Drive returned invalid JSON: {e}") from e

    def test_connection(self) -> dict:
        """Probes the root folder. Returns {'success': bool, ...}."""
        try:
            data = self._get_json(
                f"files/{self._root_folder_id}",
                {"fields": "id,name", "supportsAllDrives": "true"},
            )
            logger.info(f"Drive connection successful: {data.get('name')}")
            return {"success": True, "folder_name": data.get("name")}
        except ListingError as e:
            logger.error(f"Drive connection test failed: {e}")
            return {"success": False, "error": str(e)}

    def list_folders(self) -> list[RemoteFolder]:
        params = {
            "q": (
                f"'{self._root_folder_id}' in parents and "
                f"mimeType='{FOLDER_MIME_TYPE}' and trashed=false"
            ),
            "orderBy": "name desc",
            "fields": "files(id,name,createdTime),nextPageToken",
            **SHARED_DRIVE_PARAMS,
        }
        folders: list[RemoteFolder] = []
        page_token = None
        while True:
            if page_token:
                params["pageToken"] = page_token
            data = self._get_json("files", params)
            for f in data.get("files") or []:
                folders.append(
                    RemoteFolder(
                        id=f["id"], name=f.get("name", ""), created_at=f.get("createdTime", "")
                    )
                )
            page_token = data.get("nextPageToken")
            if not page_token:
                break

        logger.debug(f"Found {len(folders)} date folders: {[f.name for f in folders]}")
        return folders

    def list_page(
        self, folder_id: str, page_token: str | None = None, page_size: int = 100
    ) -> ListingPage:
        params = {
            "q": f"'{folder_id}' in parents and mimeType contains 'image/' and trashed=false",
            "orderBy": "createdTime desc",
            "pageSize": str(page_size),
            "fields": "files(id,name,createdTime,size,thumbnailLink),nextPageToken",
            **SHARED_DRIVE_PARAMS,
        }
        if page_token:
            params["pageToken"] = page_token
        data = self._get_json("files", params)

        items = []
        for f in data.get("files") or []:
            size = f.get("size")
            items.append(
                RemoteItem(
                    id=f["id"],
                    name=f.get("name", ""),
                    created_at=f.get("createdTime", ""),
                    size=int(size) if size is not None else None,
                    thumbnail_url=f.get("thumbnailLink"),
                )
            )
        return ListingPage(items=items, next_page_token=data.get("nextPageToken") or None)

    # ------------------------------------------------------------------
    # Download
    # ------------------------------------------------------------------

    def _direct_download_url(self, item_id: str) -> str:
        return (
            f"{self._api_base}/files/{quote(item_id, safe='')}?alt=media"
            f"&supportsAllDrives=true&key={self._api_key}"
        )

    def build_download_url(self, item_id: str) -> str:
        """Browser-facing URL. Server-side fetches never go through the proxy."""
        if self._proxy_base:
            return f"{self._proxy_base}/drive/file/{quote(item_id, safe='')}"
        return self._direct_download_url(item_id)

    def _download(self, url: str) -> bytes:
        response = self._session.get(url, timeout=self._timeout)
        if not response.ok:
            raise TransientFetchError(f"Download failed: {response.status_code}")
        if not response.content:
            raise TransientFetchError("Download returned no content")
        return response.content

    def fetch_bytes(self, item_id: str, thumbnail_url: str | None = None) -> bytes:
        """
        Downloads an item straight from Drive.

        thumbnail_url must come from a Drive listing (RemoteItem.thumbnail_url),
        never from an HTTP request.
        """
        try:
            data = self._download(self._direct_download_url(item_id))
            logger.debug(f"Downloaded {item_id}: {len(data)} bytes")
            return data
        except (requests.RequestException, TransientFetchError) as primary_err:
            if not thumbnail_url:
                raise TransientFetchError(
                    f"Failed to download {item_id}: {primary_err}"
                ) from primary_err
            logger.warning(
                f"Full download of {item_id} failed ({primary_err}), trying thumbnail"
            )
            try:
                return self._download(thumbnail_url)
            except (requests.RequestException, TransientFetchError) as thumb_err:
                logger.warning(f"Thumbnail fallback failed for {item_id}: {thumb_err}")
                raise TransientFetchError(
                    f"Failed to download {item_id}: {primary_err}"
                ) from primary_err
