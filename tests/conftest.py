"""Shared fakes for the remote capabilities and cursor persistence."""

import threading

import pytest

from image_enhance_pipeline.config import PipelineConfig
from image_enhance_pipeline.errors import TransportError
from image_enhance_pipeline.models import EnhancementResult, Entry, ListingPage

# Env vars that pydantic-settings reads -- cleared so tests see defaults
CONFIG_ENV_VARS = [
    "DROPBOX_ACCESS_TOKEN", "DROPBOX_REFRESH_TOKEN", "DROPBOX_APP_KEY",
    "DROPBOX_APP_SECRET", "DROPBOX_INPUT_PATH", "DROPBOX_OUTPUT_PATH",
    "OUTPUT_SUFFIX", "OUTPUT_FORMAT", "CONCURRENCY", "OPENAI_API_KEY",
    "OPENAI_BASE_URL", "OPENAI_IMAGE_ENDPOINT", "OPENAI_IMAGE_MODEL",
    "OPENAI_RESPONSES_MODEL", "OPENAI_IMAGE_QUALITY", "STATE_DIR", "LOCK_DIR",
    "LOG_DIR", "LOG_LEVEL", "VERBOSE",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in CONFIG_ENV_VARS:
        monkeypatch.delenv(var, raising=False)


def file_entry(path: str) -> Entry:
    return Entry(kind="file", path_lower=path, name=path.rsplit("/", 1)[-1])


class FakeCursorStore:
    """In-memory cursor store that records every set() call."""

    def __init__(self, cursor: str | None = None) -> None:
        self.cursor = cursor
        self.set_calls: list[str] = []

    def get(self) -> str | None:
        return self.cursor

    def set(self, cursor: str) -> None:
        self.set_calls.append(cursor)
        self.cursor = cursor


class FakeStorage:
    """Scripted listing pages plus an in-memory file store."""

    def __init__(
        self,
        pages: list[ListingPage] | None = None,
        files: dict[str, bytes] | None = None,
        fail_download: set[str] | None = None,
    ) -> None:
        self.pages = list(pages or [ListingPage()])
        self.files = dict(files or {})
        self.fail_download = fail_download or set()
        self.list_calls: list[tuple[str, str | None]] = []
        self.uploads: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def list_folder(self, path: str, cursor: str | None = None) -> ListingPage:
        self.list_calls.append((path, cursor))
        if not self.pages:
            raise TransportError("Dropbox list_folder/continue failed", status=409)
        return self.pages.pop(0)

    def download(self, path: str) -> bytes:
        if path in self.fail_download:
            raise TransportError("Dropbox download failed", status=409, tag="path")
        return self.files.get(path, b"raw:" + path.encode())

    def upload(self, path: str, data: bytes) -> dict:
        with self._lock:
            self.uploads[path] = data
        return {"path_lower": path}


class FakeEnhancer:
    """Prefixes bytes; raises for filenames listed in fail_on."""

    def __init__(self, fail_on: set[str] | None = None) -> None:
        self.fail_on = fail_on or set()
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def enhance(self, data: bytes, filename: str) -> EnhancementResult:
        with self._lock:
            self.calls.append(filename)
        if filename in self.fail_on:
            from image_enhance_pipeline.errors import EnhancementError

            raise EnhancementError(f"No image returned for {filename}")
        return EnhancementResult(
            data=b"enhanced:" + data, model="gpt-image-1.5", endpoint="responses"
        )


@pytest.fixture
def config(tmp_path):
    return PipelineConfig(
        _env_file=None,
        dropbox_input_path="/input",
        dropbox_output_path="/output",
        output_format="png",
        concurrency=2,
        state_dir=tmp_path / "state",
        lock_dir=tmp_path / "locks",
        log_dir=tmp_path / "logs",
    )
