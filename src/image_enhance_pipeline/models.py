"""Core enums, constants, and data types for the image enhancement pipeline.

Enums:
    EntryKind     -- Remote listing entry kind (file, folder, deleted).
    SkipReason    -- Why a scanned entry was not turned into a job.
    ImageEndpoint -- Which OpenAI API drives the enhancement (responses, generate).
    ImageQuality  -- Quality tier passed to the image generation tool.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any


class EntryKind(StrEnum):
    FILE = "file"
    FOLDER = "folder"
    DELETED = "deleted"


class SkipReason(StrEnum):
    NON_FILE = "non_file"
    MISSING_PATH = "missing_path"
    OUTSIDE_ROOT = "outside_root"
    NON_IMAGE = "non_image"


class ImageEndpoint(StrEnum):
    """Enhancement strategy selector.

    responses -- multimodal: source image + prompt, image_generation tool output
    generate  -- prompt only via the Images API (source image is ignored)
    """

    RESPONSES = "responses"
    GENERATE = "generate"


class ImageQuality(StrEnum):
    AUTO = "auto"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


IMAGE_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".png",
        ".jpg",
        ".jpeg",
        ".webp",
    }
)

IMAGE_MODELS: tuple[str, ...] = (
    "gpt-image-1.5",
    "chatgpt-image-latest",
    "gpt-image-1",
    "gpt-image-1-mini",
)

# API output formats (after the jpg -> jpeg alias)
OUTPUT_FORMATS: tuple[str, ...] = ("png", "jpeg", "webp")


@dataclass
class Entry:
    """One item from a remote folder listing."""

    kind: str
    path_lower: str = ""
    path_display: str = ""
    name: str = ""
    id: str = ""
    size: int | None = None
    rev: str = ""
    server_modified: str = ""


@dataclass
class ListingPage:
    """One page of a cursor-paginated listing."""

    entries: list[Entry] = field(default_factory=list)
    cursor: str | None = None
    has_more: bool = False


@dataclass
class Job:
    """Unit of work for one eligible file."""

    input_path: str
    filename: str
    output_path: str

    @classmethod
    def from_entry(
        cls,
        entry: Entry,
        output_root: str,
        suffix: str,
        output_format: str = "",
    ) -> Job:
        from .paths import build_output_path, job_filename

        return cls(
            input_path=entry.path_lower,
            filename=job_filename(entry.path_lower),
            output_path=build_output_path(
                entry.path_lower, output_root, suffix, output_format
            ),
        )


@dataclass(frozen=True)
class EnhanceSettings:
    """Validated enhancement parameters for one run."""

    endpoint: str
    image_model: str
    responses_model: str
    quality: str
    output_format: str


@dataclass
class EnhancementResult:
    """Enhanced image bytes plus provenance."""

    data: bytes
    model: str
    endpoint: str
    responses_model: str | None = None


@dataclass
class RunSummary:
    """Aggregate counts for one orchestrator run."""

    trigger: str = "manual"
    request_id: str = ""
    pages_scanned: int = 0
    entries_seen: int = 0
    files_scanned: int = 0
    skipped: dict[str, int] = field(
        default_factory=lambda: {reason.value: 0 for reason in SkipReason}
    )
    enqueued_jobs: int = 0
    succeeded_jobs: int = 0
    failed_jobs: int = 0
    cursor_before: str | None = None
    cursor_after: str | None = None
    duration_seconds: float = 0.0

    def record_skip(self, reason: SkipReason) -> None:
        self.skipped[reason.value] = self.skipped.get(reason.value, 0) + 1

    @property
    def skipped_total(self) -> int:
        return sum(self.skipped.values())

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)
