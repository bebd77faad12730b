"""Path classification and output path derivation.

All functions are pure -- no I/O. Remote paths are POSIX-style strings
("/input/photo.png"), already lower-cased by the listing API.
"""

import re

from loguru import logger

from .models import IMAGE_EXTENSIONS

log = logger.bind(stage="paths")


def is_image_path(path: str) -> bool:
    """True if the path ends in one of the supported image extensions."""
    lowered = path.lower()
    return any(lowered.endswith(ext) for ext in IMAGE_EXTENSIONS)


def is_inside_root(path: str, root_lower: str) -> bool:
    """True if path is the root itself or lives below it.

    Matches on whole path components: root "/input" accepts "/input" and
    "/input/a.png" but rejects "/input2/a.png".
    """
    root = root_lower.rstrip("/")
    if not root:
        # Dropbox root: everything absolute is inside it
        return path.startswith("/") or path == ""
    return path == root or path.startswith(root + "/")


def job_filename(path: str) -> str:
    """Last component of a remote path, with a fallback for empty names."""
    return path.rsplit("/", 1)[-1] or "input.png"


def build_output_path(
    input_path: str,
    output_root: str,
    suffix: str = "_ENHANCED",
    output_format: str = "",
) -> str:
    """Derive {output_root}/{stem}{suffix}.{ext} for an input path.

    ext is the configured output format if set, else the input's own
    extension, else "png". Repeated slashes are collapsed.
    """
    base_name = input_path.rsplit("/", 1)[-1] or "image"
    stem, dot, original_ext = base_name.rpartition(".")
    if not dot:
        stem, original_ext = base_name, ""

    ext = output_format.strip().lower() or original_ext or "png"
    out = f"{output_root}/{stem}{suffix}.{ext}"
    out = re.sub(r"/{2,}", "/", out)

    log.debug(f"build_output_path({input_path!r}) -> {out!r}")
    return out
