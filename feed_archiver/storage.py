"""File storage for per-feed archives."""

import logging
import os
import tempfile
from pathlib import Path

from feed_archiver.logging import feed_context
from feed_archiver.rss.document import DocumentError, read_archive, read_meta, render_archive
from feed_archiver.rss.models import Archive, FeedMeta, FeedSource

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIX = ".xml"


class ArchiveError(Exception):
    """Base class for archive storage failures."""


class ArchiveReadError(ArchiveError):
    """An existing archive file could not be read or parsed."""


class ArchiveWriteError(ArchiveError):
    """An archive file could not be written; the previous file is intact."""


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """
    Replace ``path`` with ``data`` without ever leaving a partial file.

    The data goes to a temporary file in the same directory, is flushed to
    disk and then renamed over the target. On any failure the temporary file
    is removed and the old content of ``path`` stays as it was.

    Args:
        path: Destination file
        data: Complete new content

    Raises:
        OSError: If the directory cannot be created or the write fails
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        try:
            os.remove(tmp)
        except FileNotFoundError:
            pass
        raise


class ArchiveStore:
    """One RSS document per feed in a single directory.

    Each archive file has exactly one writer per run, so no locking is used.
    """

    def __init__(self, archive_dir: Path):
        self.base_path = Path(archive_dir)

    def path_for(self, source: FeedSource) -> Path:
        """Archive file path for a feed source."""
        file_path = self.base_path / f"{source.slug}{ARCHIVE_SUFFIX}"

        # Slugs are generated, but never write outside the archive directory
        if not file_path.resolve().is_relative_to(self.base_path.resolve()):
            raise ValueError(f"Invalid archive slug: {source.slug}")

        return file_path

    def load(self, source: FeedSource) -> Archive:
        """
        Load the archive for ``source``.

        Returns:
            The stored archive, or an empty one if no file exists yet

        Raises:
            ArchiveReadError: If the file exists but cannot be read or parsed
        """
        file_path = self.path_for(source)
        try:
            data = file_path.read_bytes()
        except FileNotFoundError:
            logger.debug(f"No archive yet for {source.url}")
            return Archive(source_url=source.url)
        except OSError as e:
            raise ArchiveReadError(f"Cannot read {file_path}: {e}") from e

        try:
            archive = read_archive(data)
        except DocumentError as e:
            raise ArchiveReadError(f"Corrupt archive {file_path}: {e}") from e

        # The feed list is authoritative for the source URL
        if archive.source_url != source.url:
            archive = archive.model_copy(update={"source_url": source.url})
        return archive

    def save(self, source: FeedSource, archive: Archive, self_url: str = "") -> Path:
        """
        Atomically write the archive for ``source``.

        Args:
            source: Feed the archive belongs to
            archive: Complete archive content
            self_url: Published URL of the archive file

        Returns:
            Path of the written file

        Raises:
            ArchiveWriteError: If the file could not be written or the archive
                holds an item key that cannot be stored
        """
        file_path = self.path_for(source)
        try:
            atomic_write_bytes(file_path, render_archive(archive, self_url=self_url))
        except (OSError, DocumentError) as e:
            raise ArchiveWriteError(f"Cannot write {file_path}: {e}") from e

        logger.info(
            f"Saved {len(archive.items)} items to {file_path}",
            extra=feed_context(source.url, items=len(archive.items), path=str(file_path)),
        )
        return file_path

    def list_archives(self) -> list[Path]:
        """All archive files currently on disk, sorted by name."""
        if not self.base_path.is_dir():
            return []
        return sorted(
            p for p in self.base_path.iterdir()
            if p.suffix == ARCHIVE_SUFFIX and p.is_file()
        )

    def read_meta(self, file_path: Path) -> tuple[str, FeedMeta]:
        """Source feed URL and channel metadata of an archive file."""
        try:
            return read_meta(file_path.read_bytes())
        except (OSError, DocumentError) as e:
            raise ArchiveReadError(f"Cannot read {file_path}: {e}") from e

    def read_file(self, file_path: Path) -> Archive:
        """Load an archive file by path, whether or not its feed is still listed."""
        try:
            return read_archive(file_path.read_bytes())
        except (OSError, DocumentError) as e:
            raise ArchiveReadError(f"Cannot read {file_path}: {e}") from e
