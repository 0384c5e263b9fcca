"""Chart archive (gzip-compressed tar) reading utilities."""

import gzip
import tarfile
import zlib
from typing import Optional

MANIFEST_SUFFIX = "Chart.yaml"


class ArchiveReadError(RuntimeError):
    """Raised when a chart archive cannot be decompressed or read."""
    pass


def extract_chart_manifest(stream) -> Optional[bytes]:
    """
    Find the chart manifest inside a packaged chart.

    The stream is read sequentially as gzip+tar, so S3 response bodies can be
    passed directly. A gzip stream ending before its end-of-stream marker is
    a read error, even when the tar headers read so far were valid.

    The first member whose name ends in Chart.yaml wins; members after it
    are never read.

    Args:
        stream: File-like object with a read() method

    Returns:
        bytes: Raw content of the manifest member, or None if the archive
               holds no such member

    Raises:
        ArchiveReadError: If decompression or tar reading fails
    """
    try:
        with gzip.GzipFile(fileobj=stream, mode="rb") as decompressed, \
                tarfile.open(fileobj=decompressed, mode="r|") as archive:
            for member in archive:
                if not member.name.endswith(MANIFEST_SUFFIX):
                    continue

                manifest = archive.extractfile(member)
                if manifest is None:
                    # Directory or link named like a manifest
                    continue
                return manifest.read()
    except (tarfile.TarError, zlib.error, EOFError, OSError) as e:
        raise ArchiveReadError(str(e)) from e

    return None
