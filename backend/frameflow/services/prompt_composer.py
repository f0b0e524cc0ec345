from __future__ import annotations

import logging
from typing import Optional

from frameflow.core.logger import get_logger, log_event
from frameflow.model.board import FrameRole
from frameflow.services.gemini import GeminiGateway
from frameflow.utils.media import data_url_bytes
from frameflow.utils.text import preview, safe_text, strip_code_fences

_logger = get_logger("prompt")

STYLE_CONSTRAINT = """
Follow the minimalist visual philosophy:
- Minimalism: Extreme simplicity, remove unnecessary elements.
- Clean Focus: No clutter, soft backgrounds, cinematic depth of field.
- Negative Space: Create airiness and openness.
- Materials: High-end textures like frosted glass, brushed aluminum, satin fabric.
- Lighting: Soft studio lighting, volumetric light, elegant shadows.
- Atmosphere: Subtle fog, high contrast, clean color palettes (white, silver, space gray, or deep indigo).
"""

ROLE_INSTRUCTIONS = {
    FrameRole.START: "The beginning of the motion",
    FrameRole.END: "The final resolution of the motion",
    FrameRole.MID: "A mid-point transition",
}

REFERENCE_ANALYSIS = (
    "Analyze the provided reference image (which is the preceding frame in the sequence).\n"
    "Extract its visual style tokens: lighting temperature, color grading palette, film grain, "
    "contrast level, and lens depth of field characteristics."
)

CONTINUITY_INSTRUCTION = (
    "CRITICAL CONTINUITY INSTRUCTION: The new image prompt MUST ensure absolute visual continuity "
    "with the reference image analyzed above.\n"
    "You MUST explicitly describe the lighting, colors, and atmosphere to match the reference image exactly.\n"
    "The new prompt should describe the NEXT logical moment (or the resolution) in a way that feels "
    "like a continuous cut or flow from the reference.\n"
    "Do not change the art style."
)


def build_instruction(
    description: str,
    role: FrameRole,
    with_reference: bool,
    visual_reference: Optional[str] = None,
) -> str:
    lines = []
    if with_reference:
        lines += [REFERENCE_ANALYSIS, ""]
    lines += [
        "Transform this shot description into a high-end cinematic image prompt for an AI generator.",
        "",
        f"Current Frame Type: {ROLE_INSTRUCTIONS[role]}.",
        f"Current Shot Description: {description}",
    ]
    if safe_text(visual_reference):
        lines.append(f"Visual Reference Notes: {safe_text(visual_reference)}")
    lines.append(f"Style Constraint: {STYLE_CONSTRAINT}")
    if with_reference:
        lines += [CONTINUITY_INSTRUCTION, ""]
    lines.append("Output only the final prompt string.")
    return "\n".join(lines)


class PromptComposer:
    def __init__(self, gateway: GeminiGateway):
        self.gateway = gateway

    async def compose(
        self,
        description: str,
        role: FrameRole,
        reference_image: Optional[str] = None,
        visual_reference: Optional[str] = None,
    ) -> str:
        """
        Turn a shot description into an image prompt for `role`.
        `reference_image` is a data URL of the frame this one must continue from.
        Falls back to the description itself, never raises for gateway errors.
        """
        ref_bytes = None
        if reference_image:
            try:
                ref_bytes = data_url_bytes(reference_image)
            except ValueError as e:
                log_event(_logger, "COMPOSE bad_reference", logging.WARNING, role=role.value, err=e)
        text = build_instruction(description, role, ref_bytes is not None, visual_reference)
        try:
            out = await self.gateway.generate_text(text, reference_image=ref_bytes)
        except Exception as e:
            log_event(_logger, "COMPOSE fallback", logging.WARNING, role=role.value, err=f"{type(e).__name__}: {e}")
            return description
        out = strip_code_fences(out)
        if not out:
            log_event(_logger, "COMPOSE empty", role=role.value)
            return description
        log_event(_logger, "COMPOSE ok", role=role.value, reference=ref_bytes is not None, prompt=preview(out))
        return out
