"""Archive format detection and safe extraction.

Supports zip, plain tar, tar+gzip, tar+bzip2, tar+xz and single-file gzip.
Every entry name goes through resolve_entry_path() before anything is written;
rejected entries are skipped with a warning and extraction continues.
"""

import bz2
import gzip
import io
import locale
import logging
import lzma
import shutil
import struct
import tarfile
import zipfile
import zlib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from greenbox.core.entry_paths import normalize_entry_name, resolve_entry_path
from greenbox.core.errors import ExtractionError
from greenbox.core.naming import source_stem

logger = logging.getLogger(__name__)

# Extensions offered by file selectors for archive sources.
ARCHIVE_SELECTOR_EXTENSIONS = ("zip", "tar", "tgz", "tbz", "tbz2", "txz", "gz", "bz2", "xz")

_ZIP_UTF8_FLAG = 0x0800
_UNICODE_PATH_EXTRA_ID = 0x7075
# version (1 byte) + CRC32 of the stored name (4 bytes)
_UNICODE_PATH_HEADER_SIZE = 5

_COPY_CHUNK_SIZE = 1024 * 1024


class ArchiveFormat(Enum):
    """Archive formats recognized by suffix."""

    ZIP = "zip"
    TAR = "tar"
    TAR_GZ = "tar.gz"
    TAR_BZ2 = "tar.bz2"
    TAR_XZ = "tar.xz"
    GZ = "gz"


# Compound suffixes must be checked before the shorter ones they end with.
_SUFFIXES: tuple[tuple[str, ArchiveFormat], ...] = (
    (".tar.gz", ArchiveFormat.TAR_GZ),
    (".tgz", ArchiveFormat.TAR_GZ),
    (".tar.bz2", ArchiveFormat.TAR_BZ2),
    (".tbz2", ArchiveFormat.TAR_BZ2),
    (".tbz", ArchiveFormat.TAR_BZ2),
    (".tar.xz", ArchiveFormat.TAR_XZ),
    (".txz", ArchiveFormat.TAR_XZ),
    (".tar", ArchiveFormat.TAR),
    (".zip", ArchiveFormat.ZIP),
    (".gz", ArchiveFormat.GZ),
)


@dataclass(frozen=True)
class ExtractionReport:
    """Outcome of a single extraction.

    Fields:
        written: Files written to disk (absolute paths)
        skipped: Entry names rejected by the path sanitizer
    """

    written: list[Path] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def detect_format(path: Path | str) -> ArchiveFormat | None:
    """Infer the archive format from a file name.

    Returns None when the name carries no recognized archive suffix.

    Examples:
        >>> detect_format("MyApp.tar.gz")
        <ArchiveFormat.TAR_GZ: 'tar.gz'>
        >>> detect_format("notes.txt") is None
        True
    """
    lower = str(path).lower()
    for suffix, fmt in _SUFFIXES:
        if lower.endswith(suffix):
            return fmt
    return None


def strip_archive_suffix(name: str) -> str:
    """Remove the recognized archive suffix from a base name.

    Compound suffixes are removed whole: ``App-1.0.tar.gz`` -> ``App-1.0``.
    Names without a recognized suffix are returned unchanged.
    """
    lower = name.lower()
    for suffix, _fmt in _SUFFIXES:
        if lower.endswith(suffix):
            return name[: -len(suffix)]
    return name


def archive_base_name(path: Path) -> str:
    """Name of an archive (or other file) without its recognized suffix."""
    if detect_format(path) is not None:
        return strip_archive_suffix(path.name)
    return source_stem(path)


def extract_archive(archive: Path, destination: Path, fmt: ArchiveFormat) -> ExtractionReport:
    """Extract archive into destination, skipping entries that escape it.

    All output handles are closed before this function returns.

    Args:
        archive: Archive file to read
        destination: Directory to populate (created if missing)
        fmt: Archive format, usually from detect_format()

    Returns:
        ExtractionReport listing written files and skipped entry names

    Raises:
        ExtractionError: If the archive is corrupt or cannot be decoded
    """
    report = ExtractionReport()
    try:
        destination.mkdir(parents=True, exist_ok=True)
        if fmt == ArchiveFormat.ZIP:
            _extract_zip(archive, destination, report)
        elif fmt == ArchiveFormat.GZ:
            _extract_gz(archive, destination, report)
        else:
            _extract_tar(archive, destination, fmt, report)
    except (
        OSError,
        EOFError,
        zipfile.BadZipFile,
        tarfile.TarError,
        lzma.LZMAError,
        zlib.error,
    ) as e:
        raise ExtractionError(f"Failed to extract {archive}: {e}") from e

    if report.skipped:
        logger.warning(
            "Skipped %d unsafe entr%s while extracting %s",
            len(report.skipped),
            "y" if len(report.skipped) == 1 else "ies",
            archive,
        )
    return report


def _extract_zip(archive: Path, destination: Path, report: ExtractionReport) -> None:
    with zipfile.ZipFile(archive) as zf:
        for info in zf.infolist():
            name = resolve_zip_entry_name(info)
            if not name:
                continue

            target = resolve_entry_path(destination, name)
            if target is None:
                logger.warning("Possible path traversal, entry skipped: %s", name)
                report.skipped.append(name)
                continue

            if info.is_dir() or name.endswith("/"):
                target.mkdir(parents=True, exist_ok=True)
                continue

            target.parent.mkdir(parents=True, exist_ok=True)
            with zf.open(info) as src, open(target, "wb") as dst:
                shutil.copyfileobj(src, dst, _COPY_CHUNK_SIZE)
            report.written.append(target)


def _extract_tar(
    archive: Path, destination: Path, fmt: ArchiveFormat, report: ExtractionReport
) -> None:
    # The whole stream is decompressed before the tar structure is decoded.
    data = archive.read_bytes()
    if fmt == ArchiveFormat.TAR_GZ:
        data = gzip.decompress(data)
    elif fmt == ArchiveFormat.TAR_BZ2:
        data = bz2.decompress(data)
    elif fmt == ArchiveFormat.TAR_XZ:
        data = lzma.decompress(data)

    with tarfile.open(fileobj=io.BytesIO(data), mode="r:") as tf:
        for member in tf.getmembers():
            name = normalize_entry_name(member.name)
            if not name:
                continue

            target = resolve_entry_path(destination, name)
            if target is None:
                logger.warning("Possible path traversal, entry skipped: %s", name)
                report.skipped.append(name)
                continue

            if member.isdir():
                target.mkdir(parents=True, exist_ok=True)
                continue

            if not member.isfile():
                logger.debug("Skipping non-regular tar member: %s", name)
                continue

            src = tf.extractfile(member)
            if src is None:
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            with src, open(target, "wb") as dst:
                shutil.copyfileobj(src, dst, _COPY_CHUNK_SIZE)
            report.written.append(target)


def _extract_gz(archive: Path, destination: Path, report: ExtractionReport) -> None:
    name = archive.name
    if name.lower().endswith(".gz"):
        name = name[: -len(".gz")]

    target = resolve_entry_path(destination, name)
    if target is None:
        logger.warning("Possible path traversal, entry skipped: %s", name)
        report.skipped.append(name)
        return

    with gzip.open(archive, "rb") as src, open(target, "wb") as dst:
        shutil.copyfileobj(src, dst, _COPY_CHUNK_SIZE)
    report.written.append(target)


def resolve_zip_entry_name(info: zipfile.ZipInfo) -> str:
    """Recover the intended name of a zip entry.

    When the UTF-8 flag (general purpose bit 11) is unset, many producers still
    store the real name in an Info-ZIP Unicode Path extra field, so that is
    tried first. Otherwise the raw name bytes are re-decoded with the host's
    legacy code page.
    """
    name = info.orig_filename
    if not name:
        return ""

    if not info.flag_bits & _ZIP_UTF8_FLAG:
        unicode_name = read_unicode_path_extra(info.extra)
        if unicode_name:
            name = unicode_name
        else:
            legacy = _decode_with_legacy_code_page(name)
            if legacy:
                name = legacy

    return normalize_entry_name(name)


def read_unicode_path_extra(extra: bytes) -> str | None:
    """Return the UTF-8 name stored in an Info-ZIP Unicode Path extra field.

    Returns None if the field is absent, truncated, or not valid UTF-8.
    """
    if not extra or len(extra) < _UNICODE_PATH_HEADER_SIZE:
        return None

    offset = 0
    while offset + 4 <= len(extra):
        header_id, data_size = struct.unpack_from("<HH", extra, offset)
        offset += 4
        if offset + data_size > len(extra):
            break
        if header_id == _UNICODE_PATH_EXTRA_ID and data_size >= _UNICODE_PATH_HEADER_SIZE:
            payload = extra[offset + _UNICODE_PATH_HEADER_SIZE : offset + data_size]
            try:
                return payload.decode("utf-8")
            except UnicodeDecodeError:
                return None
        offset += data_size

    return None


def _decode_with_legacy_code_page(name: str) -> str | None:
    encoding = locale.getpreferredencoding(False)
    if encoding.lower().replace("-", "") in ("utf8", "utf8mb4"):
        return None
    # zipfile decodes names without the UTF-8 flag as cp437, which round-trips.
    try:
        raw = name.encode("cp437")
        return raw.decode(encoding)
    except (UnicodeError, LookupError):
        return None
