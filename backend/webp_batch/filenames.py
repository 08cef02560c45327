"""Output filename derivation shared by the endpoint and the batch downloads."""
from urllib.parse import quote

from webp_batch.config import OUTPUT_EXTENSION

FALLBACK_STEM = "converted"


def output_stem(filename: str) -> str:
    """Everything before the first dot of the base name ("photo.final.jpg" -> "photo")."""
    base = (filename or "").replace("\\", "/").rsplit("/", 1)[-1]
    return base.split(".", 1)[0] or FALLBACK_STEM


def derive_output_filename(filename: str, extension: str = OUTPUT_EXTENSION) -> str:
    return f"{output_stem(filename)}{extension}"


def unique_names(names: list[str]) -> list[str]:
    """Disambiguate repeated names with -1, -2 ... before the extension, keeping order."""
    seen: set[str] = set()
    result = []
    for name in names:
        candidate = name
        if candidate in seen:
            stem, dot, ext = name.rpartition(".")
            if not dot:
                stem, ext = name, ""
            n = 1
            while True:
                candidate = f"{stem}-{n}.{ext}" if dot else f"{stem}-{n}"
                if candidate not in seen:
                    break
                n += 1
        seen.add(candidate)
        result.append(candidate)
    return result


def ascii_filename(filename: str) -> str:
    """Header-safe stand-in: non-ASCII characters and header delimiters become underscores."""
    return "".join(c if " " <= c < "\x7f" and c not in '";\\' else "_" for c in filename)


def content_disposition(filename: str) -> str:
    """Attachment header with an ASCII filename plus the exact UTF-8 name (RFC 5987)."""
    value = f'attachment; filename="{ascii_filename(filename)}"'
    if ascii_filename(filename) != filename:
        value += f"; filename*=UTF-8''{quote(filename, safe='')}"
    return value
