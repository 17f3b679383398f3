"""
Remote Archive Scanner.

Walks the remote archive folder by folder (newest first) and page by page,
turning listed items into MediaDescriptors. Traversal state lives on a
ScanCursor so a scan session can be resumed exactly where it stopped, both
after a "show more" request and after a failed listing call.
"""

import re
from collections import deque
from collections.abc import Container
from dataclasses import dataclass, field

from archive.interfaces import RemoteFolder, RemoteItem, RemoteStoreInterface
from core.exceptions import ListingError
from logging_config import get_logger

logger = get_logger(__name__)

# Cameras name their uploads <YYYYMMDD-HHMMSS>_<tag>.jpg
CAMERA_TAG_PATTERN = re.compile(r"_(\d+)\.jpe?g$", re.IGNORECASE)


def camera_tag_from_filename(
    file_name: str, allowed_tags: Container[str] = ("1", "2")
) -> str | None:
    """
    Derives the camera tag from the filename suffix.

    Returns None for files that do not follow the convention or carry an
    unknown tag; such files are never ingestion candidates.
    """
    if not file_name:
        return None
    match = CAMERA_TAG_PATTERN.search(file_name.strip())
    if not match:
        return None
    tag = match.group(1)
    return tag if tag in allowed_tags else None


@dataclass(frozen=True)
class MediaDescriptor:
    """Identity of a remote camera image as seen by the scanner."""

    remote_id: str
    file_name: str
    created_at: str
    camera_tag: str
    thumbnail_url: str | None = None


@dataclass
class ScanCursor:
    """
    Traversal position of one scan session.

    Attributes:
        folders: Folder list, fetched once per session (None until first use).
        folder_index: Index of the folder currently being listed.
        page_token: Token of the next page in the current folder; None means
            the folder has not been opened yet.
        buffer: Listed items not yet handed out.
        emitted_ids: Remote IDs already returned in this session.
        consumed_pages: (folder_index, page_token) pairs already listed.
    """

    folders: list[RemoteFolder] | None = None
    folder_index: int = 0
    page_token: str | None = None
    buffer: deque[RemoteItem] = field(default_factory=deque)
    emitted_ids: set[str] = field(default_factory=set)
    consumed_pages: set[tuple[int, str | None]] = field(default_factory=set)

    @property
    def exhausted(self) -> bool:
        return (
            self.folders is not None
            and not self.buffer
            and self.folder_index >= len(self.folders)
        )

    @property
    def pages_fetched(self) -> int:
        return len(self.consumed_pages)


@dataclass
class ScanResult:
    descriptors: list[MediaDescriptor]
    cursor: ScanCursor
    exhausted: bool
    error: str | None = None


class ArchiveScanner:
    """
    Produces batches of not-yet-seen MediaDescriptors from the remote store.

    A listing failure ends the current call early: the partial batch is
    returned with exhausted=False and the cursor still points at the page
    that failed, so a retry resumes there instead of starting over.
    """

    def __init__(
        self,
        remote_store: RemoteStoreInterface,
        page_size: int = 100,
        camera_tags: Container[str] = ("1", "2"),
    ):
        self._store = remote_store
        self._page_size = page_size
        self._camera_tags = camera_tags

    def next(
        self,
        cursor: ScanCursor | None = None,
        exclude: Container[str] = frozenset(),
        want_count: int = 5,
    ) -> ScanResult:
        """
        Collects up to want_count descriptors not contained in exclude.

        Args:
            cursor: Session cursor; a fresh one is created when None.
            exclude: Remote IDs to skip (ledger, or IDs already shown).
            want_count: Maximum batch size.

        Returns:
            ScanResult with the batch, the advanced cursor and whether every
            folder has been fully consumed.
        """
        cursor = cursor if cursor is not None else ScanCursor()
        batch: list[MediaDescriptor] = []

        try:
            if cursor.folders is None:
                cursor.folders = self._store.list_folders()
                logger.debug(f"Scan session loaded {len(cursor.folders)} folders")

            while len(batch) < want_count:
                if cursor.buffer:
                    item = cursor.buffer.popleft()
                    descriptor = self._accept(item, cursor, exclude)
                    if descriptor is not None:
                        batch.append(descriptor)
                        cursor.emitted_ids.add(descriptor.remote_id)
                    continue
                if cursor.folder_index >= len(cursor.folders):
                    break
                self._list_next_page(cursor)
        except ListingError as e:
            logger.warning(
                f"Listing failed at folder {cursor.folder_index}, returning "
                f"{len(batch)} partial results: {e}"
            )
            return ScanResult(descriptors=batch, cursor=cursor, exhausted=False, error=str(e))

        return ScanResult(descriptors=batch, cursor=cursor, exhausted=cursor.exhausted)

    def _accept(
        self, item: RemoteItem, cursor: ScanCursor, exclude: Container[str]
    ) -> MediaDescriptor | None:
        if item.id in cursor.emitted_ids or item.id in exclude:
            return None
        tag = camera_tag_from_filename(item.name, self._camera_tags)
        if tag is None:
            return None
        return MediaDescriptor(
            remote_id=item.id,
            file_name=item.name,
            created_at=item.created_at,
            camera_tag=tag,
            thumbnail_url=item.thumbnail_url,
        )

    def _list_next_page(self, cursor: ScanCursor) -> None:
        folder = cursor.folders[cursor.folder_index]
        position = (cursor.folder_index, cursor.page_token)
        page = self._store.list_page(folder.id, cursor.page_token, self._page_size)
        cursor.consumed_pages.add(position)
        cursor.buffer.extend(page.items)

        next_token = page.next_page_token
        if next_token and (cursor.folder_index, next_token) in cursor.consumed_pages:
            logger.warning(f"Folder {folder.name} repeated page token, treating as exhausted")
            next_token = None

        if next_token:
            cursor.page_token = next_token
        else:
            cursor.folder_index += 1
            cursor.page_token = None
