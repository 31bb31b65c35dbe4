import io
import zipfile
from typing import Iterable, Tuple

from .errors import ArchiveFailed


def _unique_name(name: str, seen: set[str]) -> str:
    if name not in seen:
        return name
    stem, dot, ext = name.rpartition(".")
    if not dot:
        stem, ext = name, ""
    i = 2
    while True:
        candidate = f"{stem}_{i}.{ext}" if ext else f"{stem}_{i}"
        if candidate not in seen:
            return candidate
        i += 1


def build_zip(entries: Iterable[Tuple[str, bytes]]) -> bytes:
    """Pack (name, bytes) pairs into an in-memory deflated ZIP."""
    buf = io.BytesIO()
    try:
        with zipfile.ZipFile(buf, mode="w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
            seen: set[str] = set()
            for name, data in entries:
                arcname = _unique_name(name, seen)
                seen.add(arcname)
                zf.writestr(arcname, data)
    except (OSError, ValueError, zipfile.BadZipFile) as e:
        raise ArchiveFailed(f"Failed to create ZIP: {e}") from e
    return buf.getvalue()
