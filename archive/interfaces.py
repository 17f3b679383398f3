"""
Remote Store Interface - Hierarchical Media Archive.

Defines the contract for a folder-partitioned, paginated media listing
service (one folder per capture day, newest first).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class RemoteFolder:
    """
    A date folder in the remote archive.

    Attributes:
        id: Opaque folder identifier.
        name: Folder name (typically YYYY-MM-DD).
        created_at: ISO timestamp reported by the store.
    """

    id: str
    name: str
    created_at: str = ""


@dataclass(frozen=True)
class RemoteItem:
    """A media file as listed by the remote store."""

    id: str
    name: str
    created_at: str = ""
    size: int | None = None
    thumbnail_url: str | None = None


@dataclass
class ListingPage:
    """One page of a folder listing."""

    items: list[RemoteItem] = field(default_factory=list)
    next_page_token: str | None = None


class RemoteStoreInterface(ABC):
    """
    Interface for the remote hierarchical media store.

    Implementations should:
    - Return folders sorted newest first
    - Return items of a folder newest first, page by page
    - Raise ListingError / TransientFetchError instead of transport errors
    - Apply an explicit timeout to every call
    """

    @abstractmethod
    def list_folders(self) -> list[RemoteFolder]:
        """
        Lists the date folders below the archive root.

        Returns:
            Folders sorted newest first.

        Raises:
            ListingError: If the listing call fails.
        """
        pass

    @abstractmethod
    def list_page(
        self, folder_id: str, page_token: str | None = None, page_size: int = 100
    ) -> ListingPage:
        """
        Lists one page of image items inside a folder.

        Args:
            folder_id: Folder to list.
            page_token: Token returned by the previous page, None for the first.
            page_size: Maximum number of items in the page.

        Returns:
            ListingPage with items and the token of the next page (None at end).

        Raises:
            ListingError: If the listing call fails.
        """
        pass

    @abstractmethod
    def fetch_bytes(self, item_id: str, thumbnail_url: str | None = None) -> bytes:
        """
        Downloads the raw bytes of an item.

        Args:
            item_id: Item to download.
            thumbnail_url: Optional lower-resolution URL tried when the
                primary download fails.

        Raises:
            TransientFetchError: If the bytes cannot be retrieved.
        """
        pass

    @abstractmethod
    def build_download_url(self, item_id: str) -> str:
        """Returns a URL a browser can use to display the item."""
        pass

    @abstractmethod
    def test_connection(self) -> dict:
        """Probes the archive. Returns {'success': bool, ...}; never raises."""
        pass
