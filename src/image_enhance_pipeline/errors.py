"""Exception hierarchy and error diagnostics for the enhancement pipeline."""

from collections.abc import Callable


class PipelineError(Exception):
    """Base exception for all pipeline errors."""


class ConfigError(PipelineError):
    """Invalid or missing configuration. Raised before any remote call."""


class CursorStoreError(PipelineError):
    """Cursor could not be read or persisted."""


class LockError(PipelineError):
    """Raised when the global run lock cannot be acquired."""


class TransportError(PipelineError):
    """A remote call (list, download, upload, transform) failed."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        tag: str | None = None,
        summary: str | None = None,
    ) -> None:
        detail = _join_detail(status, tag, summary)
        super().__init__(f"{message} ({detail})" if detail else message)
        self.status = status
        self.tag = tag
        self.summary = summary


class EnhancementError(PipelineError):
    """The image transformation failed or returned no image."""


class ScanError(PipelineError):
    """The remote listing itself failed. Fatal to the run."""


class JobError(PipelineError):
    """One file's download -> enhance -> upload failed."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


def _join_detail(
    status: int | None, tag: str | None, summary: str | None
) -> str:
    parts = []
    if status is not None:
        parts.append(f"status={status}")
    if tag:
        parts.append(f"tag={tag}")
    if summary:
        parts.append(summary)
    return " ".join(parts)


# -- Diagnostic extraction --
#
# Provider SDKs and our own TransportError expose status/tag/summary under
# different attribute names. Each extractor returns the first populated
# value for one field; describe_error() joins them into a single line.


def _first_attr(exc: BaseException, names: tuple[str, ...]):
    for name in names:
        value = getattr(exc, name, None)
        if value not in (None, ""):
            return value
    return None


def _extract_status(exc: BaseException) -> int | None:
    status = _first_attr(exc, ("status", "status_code", "http_status"))
    if status is None:
        response = getattr(exc, "response", None)
        status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def _extract_tag(exc: BaseException) -> str | None:
    tag = _first_attr(exc, ("tag", "code"))
    if tag is None:
        error = getattr(exc, "error", None) or getattr(exc, "body", None)
        if isinstance(error, dict):
            tag = error.get(".tag") or error.get("code")
            inner = error.get("error")
            if tag is None and isinstance(inner, dict):
                tag = inner.get(".tag") or inner.get("code")
    return str(tag) if tag else None


def _extract_summary(exc: BaseException) -> str | None:
    summary = _first_attr(exc, ("summary", "error_summary", "user_message"))
    if summary is None:
        message = getattr(exc, "message", None)
        summary = message if isinstance(message, str) and message else None
    if summary is None:
        summary = str(exc) or None
    return " ".join(str(summary).split()) if summary else None


_EXTRACTORS: tuple[tuple[str, Callable[[BaseException], object]], ...] = (
    ("status", _extract_status),
    ("tag", _extract_tag),
    ("summary", _extract_summary),
)


def describe_error(exc: BaseException) -> str:
    """Collapse whatever diagnostics an exception carries into one line.

    Used for log formatting only; never drives control flow.
    """
    if isinstance(exc, TransportError):
        # Message already embeds the detail
        return f"{type(exc).__name__}: {' '.join(str(exc).split())}"

    fields = {name: extract(exc) for name, extract in _EXTRACTORS}
    detail = _join_detail(fields["status"], fields["tag"], fields["summary"])
    return f"{type(exc).__name__}: {detail}" if detail else type(exc).__name__
