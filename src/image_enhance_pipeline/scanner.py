"""Cursor-based delta scanner over a remote folder listing.

Pages through list_folder results, persisting each page's cursor before
yielding that page's entries. A crash mid-page therefore resumes at the next
page: entries of a partially consumed page may be skipped (at-most-once per
page), but already-scanned pages are never rescanned.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Protocol

from loguru import logger

from .errors import PipelineError, ScanError, TransportError, describe_error
from .models import Entry, EntryKind, ListingPage, RunSummary, SkipReason
from .paths import is_image_path, is_inside_root

log = logger.bind(stage="scanner")


class ListingSource(Protocol):
    def list_folder(self, path: str, cursor: str | None = None) -> ListingPage: ...


class CursorBackend(Protocol):
    def get(self) -> str | None: ...

    def set(self, cursor: str) -> None: ...


def classify_entry(entry: Entry, root_lower: str) -> SkipReason | None:
    """Return why an entry is skipped, or None if it is eligible."""
    if entry.kind != EntryKind.FILE:
        return SkipReason.NON_FILE
    if not entry.path_lower:
        return SkipReason.MISSING_PATH
    if not is_inside_root(entry.path_lower, root_lower):
        return SkipReason.OUTSIDE_ROOT
    if not is_image_path(entry.path_lower):
        return SkipReason.NON_IMAGE
    return None


class DeltaScanner:
    """Yields eligible entries changed since the stored cursor."""

    def __init__(self, source: ListingSource, cursor_store: CursorBackend) -> None:
        self.source = source
        self.cursor_store = cursor_store

    def _fetch(self, root: str, cursor: str | None) -> ListingPage:
        try:
            return self.source.list_folder(root, cursor)
        except TransportError as e:
            raise ScanError(f"Listing failed for {root!r}: {e}") from e
        except PipelineError:
            raise
        except Exception as e:
            raise ScanError(f"Listing failed for {root!r}: {describe_error(e)}") from e

    def scan(
        self,
        root: str,
        start_cursor: str | None,
        summary: RunSummary | None = None,
    ) -> Iterator[Entry]:
        """Lazily yield eligible entries, advancing the cursor per page.

        Without a start cursor this performs a full recursive listing of root;
        with one it continues from it. Skip reasons are tallied into summary.
        """
        summary = summary if summary is not None else RunSummary()
        root_lower = root.strip().lower()

        page = self._fetch(root, start_cursor)
        last_cursor = start_cursor

        while True:
            # Only pages carrying entries count, so an empty root reports all zeros
            if page.entries:
                summary.pages_scanned += 1
            if page.cursor:
                self.cursor_store.set(page.cursor)
                last_cursor = page.cursor

            log.debug(
                f"Page: {len(page.entries)} entries, cursor={'set' if page.cursor else 'none'}, "
                f"has_more={page.has_more}"
            )

            for entry in page.entries:
                summary.entries_seen += 1
                if entry.kind == EntryKind.FILE:
                    summary.files_scanned += 1

                reason = classify_entry(entry, root_lower)
                if reason is not None:
                    summary.record_skip(reason)
                    log.trace(f"Skip {entry.path_lower or entry.name!r}: {reason}")
                    continue
                yield entry

            if not page.has_more:
                break

            # Continue from the freshly persisted cursor, not the run's start
            next_cursor = self.cursor_store.get() or last_cursor
            if not next_cursor:
                raise ScanError("Listing reported has_more without a cursor")
            page = self._fetch(root, next_cursor)

        summary.cursor_after = last_cursor
