from __future__ import annotations

from typing import Any, List, Optional

import httpx
from google import genai
from google.genai import types
from pydantic import BaseModel

from frameflow.core.config import Settings
from frameflow.core.logger import get_logger, log_event
from frameflow.utils.text import preview

_logger = get_logger("gemini")

# Error text Google returns when the key's project cannot use Veo
ENTITLEMENT_SIGNATURE = "Requested entity was not found"


# =========================================================
# Errors
# =========================================================
class GatewayError(RuntimeError):
    """Any failed or empty call to the generative API."""


class EntitlementError(GatewayError):
    """The configured key lacks the entitlement for the requested model."""


def is_entitlement_error(exc: BaseException) -> bool:
    return isinstance(exc, EntitlementError) or ENTITLEMENT_SIGNATURE in str(exc)


def _wrap(exc: Exception, action: str) -> GatewayError:
    if isinstance(exc, EntitlementError):
        return exc
    if ENTITLEMENT_SIGNATURE in str(exc):
        return EntitlementError(f"{action} failed: {exc}")
    if isinstance(exc, GatewayError):
        return exc
    return GatewayError(f"{action} failed: {exc}")


# =========================================================
# Response helpers
# =========================================================
def _pick_text_from_response(resp: Any) -> str:
    t = getattr(resp, "text", None)
    if isinstance(t, str) and t.strip():
        return t.strip()
    for c in getattr(resp, "candidates", None) or []:
        content = getattr(c, "content", None)
        parts = getattr(content, "parts", None) or []
        s = "".join(getattr(p, "text", None) or "" for p in parts).strip()
        if s:
            return s
    return ""


def _pick_image_from_response(resp: Any) -> Optional[bytes]:
    for c in getattr(resp, "candidates", None) or []:
        content = getattr(c, "content", None)
        for part in getattr(content, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            if inline is not None and getattr(inline, "data", None):
                return inline.data
    return None


def _image_part(raw: bytes, mime_type: str = "image/png") -> types.Part:
    return types.Part.from_bytes(data=raw, mime_type=mime_type)


class AnimationStatus(BaseModel):
    done: bool
    video_uri: Optional[str] = None
    error: Optional[str] = None
    handle: Any = None


# =========================================================
# Gateway
# =========================================================
class GeminiGateway:
    """
    Single-call adapter over google-genai. Retries are not done here;
    the engine decides what to do with a GatewayError.
    """

    def __init__(self, settings: Settings, client: Optional[genai.Client] = None):
        self.settings = settings
        self._client = client

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            if not self.settings.has_api_key():
                raise GatewayError("Missing API key. Set GEMINI_API_KEY.")
            self._client = genai.Client(api_key=self.settings.GEMINI_API_KEY)
        return self._client

    async def _generate(self, action: str, model: str, parts: List[Any], config: Optional[types.GenerateContentConfig] = None) -> Any:
        log_event(_logger, f"GEMINI_{action.upper()} start", model=model)
        try:
            resp = await self.client.aio.models.generate_content(
                model=model,
                contents=parts,
                config=config,
            )
        except Exception as e:
            log_event(_logger, f"GEMINI_{action.upper()} error", model=model, err=e)
            raise _wrap(e, action)
        log_event(_logger, f"GEMINI_{action.upper()} ok", model=model)
        return resp

    async def _generate_image(self, action: str, model: str, parts: List[Any], config: Optional[types.GenerateContentConfig] = None) -> bytes:
        resp = await self._generate(action, model, parts, config)
        raw = _pick_image_from_response(resp)
        if not raw:
            raise GatewayError(f"{action}: no image data returned from Gemini")
        return raw

    # ---- text / vision ------------------------------------------------------
    async def generate_text(self, prompt: str, reference_image: Optional[bytes] = None) -> str:
        parts: List[Any] = []
        if reference_image:
            parts.append(_image_part(reference_image))
        parts.append(prompt)
        resp = await self._generate("text", self.settings.GEMINI_MODEL_TEXT, parts)
        return _pick_text_from_response(resp)

    # ---- images -------------------------------------------------------------
    async def synthesize_image(self, prompt: str, aspect_ratio: Optional[str] = None, image_size: Optional[str] = None) -> bytes:
        config = types.GenerateContentConfig(
            response_modalities=["IMAGE"],
            image_config=types.ImageConfig(
                aspect_ratio=aspect_ratio or self.settings.IMAGE_ASPECT_RATIO,
                image_size=image_size or self.settings.IMAGE_SIZE,
            ),
        )
        return await self._generate_image("image", self.settings.GEMINI_MODEL_IMAGE, [prompt], config)

    async def synthesize_interpolated_image(self, image_a: bytes, image_b: bytes, guidance: str, progress: float) -> bytes:
        text = (
            f"Generate a middle frame that represents a transition exactly {round(progress * 100)}% "
            "through the motion between the first image (start) and second image (end).\n"
            f"{guidance}\n"
            "The resulting image must bridge the gap between the two provided frames naturally."
        )
        config = types.GenerateContentConfig(
            response_modalities=["IMAGE"],
            image_config=types.ImageConfig(aspect_ratio=self.settings.IMAGE_ASPECT_RATIO),
        )
        parts = [_image_part(image_a), _image_part(image_b), text]
        return await self._generate_image("interpolate", self.settings.GEMINI_MODEL_IMAGE_EDIT, parts, config)

    async def edit_image(self, image: bytes, instruction: str) -> bytes:
        config = types.GenerateContentConfig(response_modalities=["IMAGE"])
        parts = [_image_part(image), instruction]
        return await self._generate_image("edit", self.settings.GEMINI_MODEL_IMAGE_EDIT, parts, config)

    # ---- video (Veo) --------------------------------------------------------
    async def animate_image(self, image: bytes, prompt: str) -> Any:
        model = self.settings.GEMINI_MODEL_VIDEO
        log_event(_logger, "VEO_SUBMIT start", model=model, prompt=preview(prompt))
        try:
            op = await self.client.aio.models.generate_videos(
                model=model,
                prompt=f"Animate this scene naturally: {prompt}. Subtle motion, elegant flow.",
                image=types.Image(image_bytes=image, mime_type="image/png"),
                config=types.GenerateVideosConfig(
                    number_of_videos=1,
                    resolution=self.settings.VIDEO_RESOLUTION,
                    aspect_ratio=self.settings.IMAGE_ASPECT_RATIO,
                ),
            )
        except Exception as e:
            log_event(_logger, "VEO_SUBMIT error", model=model, err=e)
            raise _wrap(e, "animate")
        log_event(_logger, "VEO_SUBMIT ok", operation=getattr(op, "name", None))
        return op

    async def poll_animation(self, handle: Any) -> AnimationStatus:
        try:
            op = await self.client.aio.operations.get(handle)
        except Exception as e:
            raise _wrap(e, "poll animation")

        if not getattr(op, "done", False):
            return AnimationStatus(done=False, handle=op)

        err = getattr(op, "error", None)
        if err:
            raise _wrap(GatewayError(f"video operation error: {err}"), "animate")

        resp = getattr(op, "response", None) or getattr(op, "result", None)
        videos = getattr(resp, "generated_videos", None) or []
        video = getattr(videos[0], "video", None) if videos else None
        uri = getattr(video, "uri", None)
        if not uri:
            raise GatewayError("Video generation finished without a video URI.")
        return AnimationStatus(done=True, video_uri=uri, handle=op)

    async def download_video(self, uri: str) -> bytes:
        # the download link needs the key appended, like the AI Studio files endpoint expects
        try:
            async with httpx.AsyncClient(timeout=120.0, follow_redirects=True) as client:
                r = await client.get(uri, params={"key": self.settings.GEMINI_API_KEY})
                r.raise_for_status()
                return r.content
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise GatewayError(f"video download failed: {type(e).__name__}: {e}")

    # ---- documents ----------------------------------------------------------
    async def extract_shots(self, document: bytes, media_type: str, instruction: str) -> str:
        config = types.GenerateContentConfig(response_mime_type="application/json")
        parts = [types.Part.from_bytes(data=document, mime_type=media_type), instruction]
        resp = await self._generate("extract", self.settings.GEMINI_MODEL_TEXT, parts, config)
        return _pick_text_from_response(resp)
