"""Feed archive reader - locates recognised files inside a ZIP."""

from __future__ import annotations

import io
import posixpath
import zipfile

from transit_feed_api.logging import get_logger
from transit_feed_api.services.feed.schema import TABLES_BY_FILENAME

logger = get_logger(__name__)

REQUIRED_FILES = frozenset({"routes.txt", "trips.txt", "stops.txt", "stop_times.txt"})


class MissingRequiredFileError(Exception):
    """Raised when a required feed file is missing from the archive."""


class FeedArchive:
    """Opens a feed ZIP and indexes its members by base name.

    Feeds are sometimes zipped together with their enclosing folder, so
    ``google_transit/stops.txt`` is accepted as ``stops.txt``.
    """

    def __init__(self, data: bytes) -> None:
        """Open an archive from bytes.

        Raises:
            zipfile.BadZipFile: If data is not a valid ZIP.
            MissingRequiredFileError: If required files are missing.
        """
        self._zip = zipfile.ZipFile(io.BytesIO(data))
        self._members: dict[str, str] = {}
        ignored: list[str] = []
        for info in self._zip.infolist():
            if info.is_dir():
                continue
            base = posixpath.basename(info.filename)
            if base in TABLES_BY_FILENAME and base not in self._members:
                self._members[base] = info.filename
            else:
                ignored.append(info.filename)

        missing = REQUIRED_FILES - self._members.keys()
        if missing:
            self._zip.close()
            msg = f"Missing required feed files: {sorted(missing)}"
            raise MissingRequiredFileError(msg)

        logger.info(
            "Feed archive opened",
            recognised=sorted(self._members),
            ignored=ignored or None,
        )

    def has_file(self, filename: str) -> bool:
        return filename in self._members

    def open_file(self, filename: str) -> io.TextIOWrapper:
        """Open a recognised file for text reading (BOM tolerant)."""
        binary_stream = self._zip.open(self._members[filename])
        return io.TextIOWrapper(binary_stream, encoding="utf-8-sig", newline="")

    def list_files(self) -> list[str]:
        """Recognised base names present in the archive."""
        return sorted(self._members)

    def close(self) -> None:
        self._zip.close()

    def __enter__(self) -> FeedArchive:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
