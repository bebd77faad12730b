"""Image enhancement via the OpenAI image APIs.

Two interchangeable strategies sit behind ImageEnhancer.enhance():
    responses -- Responses API: prompt + source image as input, image_generation
                 tool produces the enhanced image.
    generate  -- Images API: prompt only (source image is not sent).
The strategy is picked from configuration; callers never branch on it.
"""

from __future__ import annotations

import base64
from typing import Any

from loguru import logger

from .config import PipelineConfig
from .errors import ConfigError, EnhancementError, describe_error
from .models import (
    IMAGE_MODELS,
    OUTPUT_FORMATS,
    EnhanceSettings,
    EnhancementResult,
    ImageEndpoint,
    ImageQuality,
)

log = logger.bind(stage="enhance")

ENHANCE_PROMPT = (
    "Enhance this image without changing any elements or composition. "
    "Increase contrast and colour saturation to create a clean HDR look while "
    "keeping blacks deep and rich. Remove all noise and grain, apply smooth "
    "professional denoising while preserving sharp logo edges and fabric "
    "detail. Add a subtle but noticeable outer vignette to darken the corners "
    "and draw focus toward the centre. Keep the image crisp, high-definition, "
    "vibrant, and cinematic. Do not alter positioning, lighting direction, or "
    "design elements - only enhance clarity, depth, and colour intensity."
)

GENERATE_SIZE = "1024x1024"


# -- Allow-list validation --


def _resolve_choice(
    raw: str | None, default: str, allowed: tuple[str, ...], env_name: str
) -> str:
    normalized = (raw or default).strip().lower() or default
    if normalized not in allowed:
        raise ConfigError(
            f'Invalid {env_name}="{normalized}". '
            f"Supported values: {', '.join(allowed)}."
        )
    return normalized


def resolve_image_endpoint(raw: str | None) -> str:
    return _resolve_choice(
        raw,
        ImageEndpoint.RESPONSES.value,
        tuple(e.value for e in ImageEndpoint),
        "OPENAI_IMAGE_ENDPOINT",
    )


def resolve_image_model(raw: str | None) -> str:
    return _resolve_choice(raw, IMAGE_MODELS[0], IMAGE_MODELS, "OPENAI_IMAGE_MODEL")


def resolve_image_quality(raw: str | None) -> str:
    return _resolve_choice(
        raw,
        ImageQuality.MEDIUM.value,
        tuple(q.value for q in ImageQuality),
        "OPENAI_IMAGE_QUALITY",
    )


def resolve_output_format(raw: str | None) -> str:
    """Validate the API output format. "jpg" is accepted as "jpeg"."""
    normalized = (raw or "png").strip().lower() or "png"
    alias = "jpeg" if normalized == "jpg" else normalized
    if alias not in OUTPUT_FORMATS:
        raise ConfigError(
            f'Invalid OUTPUT_FORMAT="{normalized}". '
            f"Supported values: {', '.join(OUTPUT_FORMATS)}."
        )
    return alias


def resolve_responses_model(raw: str | None) -> str:
    model = (raw or "gpt-5-mini").strip()
    if not model:
        raise ConfigError("Invalid OPENAI_RESPONSES_MODEL")
    return model


def resolve_settings(config: PipelineConfig) -> EnhanceSettings:
    """Validate every enhancement setting at once. Raises ConfigError."""
    return EnhanceSettings(
        endpoint=resolve_image_endpoint(config.openai_image_endpoint),
        image_model=resolve_image_model(config.openai_image_model),
        responses_model=resolve_responses_model(config.openai_responses_model),
        quality=resolve_image_quality(config.openai_image_quality),
        output_format=resolve_output_format(config.output_format),
    )


# -- Inline image encoding --


def guess_mime_type(filename: str) -> str:
    """MIME type from the filename extension; image/png when unknown."""
    normalized = (filename or "").lower()
    if normalized.endswith((".jpg", ".jpeg")):
        return "image/jpeg"
    if normalized.endswith(".webp"):
        return "image/webp"
    return "image/png"


def to_data_url(data: bytes, filename: str) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{guess_mime_type(filename)};base64,{encoded}"


def _field(item: Any, name: str) -> Any:
    """Read a field from an SDK model object or a plain dict."""
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def _decode_b64(b64: str, source: str) -> bytes:
    try:
        # Non-alphabet characters such as line breaks are discarded
        return base64.b64decode(b64)
    except (ValueError, TypeError) as e:
        raise EnhancementError(f"Invalid image data returned from {source}: {e}") from e


# -- Strategies --


class ResponsesStrategy:
    """Send the source image as context and ask for an image_generation call."""

    name = ImageEndpoint.RESPONSES.value

    def run(
        self,
        client,
        data: bytes,
        filename: str,
        settings: EnhanceSettings,
    ) -> EnhancementResult:
        response = client.responses.create(
            model=settings.responses_model,
            input=[
                {
                    "role": "user",
                    "content": [
                        {"type": "input_text", "text": ENHANCE_PROMPT},
                        {"type": "input_image", "image_url": to_data_url(data, filename)},
                    ],
                }
            ],
            tools=[
                {
                    "type": "image_generation",
                    "model": settings.image_model,
                    "output_format": settings.output_format,
                    "quality": settings.quality,
                }
            ],
        )

        output = _field(response, "output") or []
        image_call = next(
            (item for item in output if _field(item, "type") == "image_generation_call"),
            None,
        )
        b64 = _field(image_call, "result") if image_call is not None else None
        if not b64:
            raise EnhancementError("No image returned from Responses API")

        return EnhancementResult(
            data=_decode_b64(b64, "Responses API"),
            model=settings.image_model,
            endpoint="responses",
            responses_model=settings.responses_model,
        )


class ImagesGenerateStrategy:
    """Generate from the prompt alone; the source image is not used."""

    name = ImageEndpoint.GENERATE.value

    def run(
        self,
        client,
        data: bytes,
        filename: str,
        settings: EnhanceSettings,
    ) -> EnhancementResult:
        result = client.images.generate(
            model=settings.image_model,
            prompt=ENHANCE_PROMPT,
            size=GENERATE_SIZE,
            output_format=settings.output_format,
        )

        items = _field(result, "data") or []
        b64 = _field(items[0], "b64_json") if items else None
        if not b64:
            raise EnhancementError("No image returned from Images API")

        return EnhancementResult(
            data=_decode_b64(b64, "Images API"),
            model=settings.image_model,
            endpoint="images.generate",
        )


STRATEGIES = {
    ImageEndpoint.RESPONSES.value: ResponsesStrategy(),
    ImageEndpoint.GENERATE.value: ImagesGenerateStrategy(),
}


def get_client(api_key: str, base_url: str = ""):
    """Return an OpenAI client. Raises ConfigError if the key is missing."""
    if not api_key or not api_key.strip():
        raise ConfigError("Missing OPENAI_API_KEY")

    from openai import OpenAI

    kwargs: dict[str, str] = {"api_key": api_key.strip()}
    if base_url:
        kwargs["base_url"] = base_url.rstrip("/")
    return OpenAI(**kwargs)


class ImageEnhancer:
    """Turns source image bytes into enhanced bytes.

    Settings are re-validated on every call so a bad value surfaces as a
    ConfigError naming the accepted values, never as a silent fallback.
    """

    def __init__(self, config: PipelineConfig, client=None) -> None:
        self.config = config
        self._client = client

    @classmethod
    def from_config(cls, config: PipelineConfig) -> ImageEnhancer:
        return cls(config, get_client(config.openai_api_key, config.openai_base_url))

    @property
    def client(self):
        if self._client is None:
            self._client = get_client(
                self.config.openai_api_key, self.config.openai_base_url
            )
        return self._client

    def enhance(self, data: bytes, filename: str) -> EnhancementResult:
        settings = resolve_settings(self.config)
        strategy = STRATEGIES[settings.endpoint]

        log.debug(
            f"Enhancing {filename} via {strategy.name} "
            f"(model={settings.image_model}, quality={settings.quality}, "
            f"format={settings.output_format}, {len(data):,} bytes)"
        )

        try:
            result = strategy.run(self.client, data, filename, settings)
        except (EnhancementError, ConfigError):
            raise
        except Exception as e:
            raise EnhancementError(
                f"{strategy.name} call failed for {filename}: {describe_error(e)}"
            ) from e

        log.debug(f"Enhanced {filename}: {len(result.data):,} bytes from {result.endpoint}")
        return result
