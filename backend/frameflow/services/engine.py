"""
Continuity orchestration.

Every operation renders frames through the same short pipeline:

    resolve-context -> compose-prompt -> call-gateway -> commit-or-rollback

Each stage returns a StageResult. A failed stage rolls the frame back to its
pre-call shape (only the in-flight flag is cleared) and the operation moves on
to the next frame, so one frame's failure never touches its siblings.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from frameflow.core.config import Settings
from frameflow.core.logger import get_logger, log_event
from frameflow.model.board import (
    Frame,
    FrameResult,
    FrameRole,
    OperationOutcome,
    OutcomeStatus,
    Shot,
    StageResult,
)
from frameflow.services.gemini import GatewayError, GeminiGateway, is_entitlement_error
from frameflow.services.polling import poll_until_done
from frameflow.services.prompt_composer import STYLE_CONSTRAINT, PromptComposer
from frameflow.services.store import BoardStore, FrameNotFound, new_frame
from frameflow.utils.media import data_url_bytes, to_data_url
from frameflow.utils.text import safe_text

_logger = get_logger("engine")

MSG_NO_API_KEY = "Select an API key before generating."
MSG_NEED_ENDPOINTS = "Generate the start and end frames first."
MSG_ANIMATE_NEEDS_PROMPT = "Only a generated frame (image and prompt) can be animated."
MSG_EDIT_NEEDS_IMAGE = "The frame has no image to edit yet."
MSG_EDIT_NEEDS_TEXT = "Describe the edit to apply."
MSG_ENTITLEMENT = "Veo needs an API key from a paid Google Cloud project. Select another API key."
EDIT_STYLE_SUFFIX = "Maintain the minimalist aesthetic."


class ContinuityEngine:
    def __init__(
        self,
        store: BoardStore,
        gateway: GeminiGateway,
        settings: Settings,
        composer: Optional[PromptComposer] = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ):
        self.store = store
        self.gateway = gateway
        self.settings = settings
        self.composer = composer or PromptComposer(gateway)
        self._sleep = sleep

    # =====================================================================
    # Pipeline stages
    # =====================================================================
    def _resolve_previous_end(self, shot_id: str) -> Optional[str]:
        prev = self.store.previous_shot(shot_id)
        if prev is None or prev.end_frame is None:
            return None
        return prev.end_frame.image_url

    async def _compose_stage(self, shot: Shot, role: FrameRole, reference: Optional[str]) -> StageResult:
        prompt = await self.composer.compose(
            shot.description,
            role,
            reference_image=reference,
            visual_reference=shot.visual_reference,
        )
        return StageResult.ok(prompt)

    async def _gateway_stage(self, call: Callable[[], Awaitable[bytes]]) -> StageResult:
        try:
            raw = await call()
        except GatewayError as e:
            return StageResult.fail(str(e))
        except Exception as e:
            log_event(_logger, "GATEWAY unexpected", logging.ERROR, err=f"{type(e).__name__}: {e}")
            return StageResult.fail(f"{type(e).__name__}: {e}")
        return StageResult.ok(to_data_url(raw))

    def _commit_or_rollback(self, shot_id: str, frame_id: str, result: StageResult, flag: str, **on_success) -> StageResult:
        changes = {flag: False}
        if result.success:
            changes.update(on_success)
        try:
            self.store.update_frame(shot_id, frame_id, **changes)
        except FrameNotFound:
            # replaced while in flight (e.g. a newer transition run)
            log_event(_logger, "COMMIT dropped", logging.WARNING, shot=shot_id, frame=frame_id)
            return StageResult.fail("frame no longer exists")
        return result

    async def _render_frame(
        self,
        shot: Shot,
        frame: Frame,
        reference: Optional[str],
    ) -> StageResult:
        """compose -> synthesize -> commit for one START/END frame; value is the new image URL."""
        self.store.update_frame(shot.id, frame.id, is_generating=True)
        log_event(_logger, "FRAME start", shot=shot.id, frame=frame.id, role=frame.role.value, reference=reference is not None)

        composed = await self._compose_stage(shot, frame.role, reference)
        prompt = composed.value
        generated = await self._gateway_stage(
            lambda: self.gateway.synthesize_image(
                prompt,
                aspect_ratio=self.settings.IMAGE_ASPECT_RATIO,
                image_size=self.settings.IMAGE_SIZE,
            )
        )
        if not generated.success:
            log_event(_logger, "FRAME failed", logging.ERROR, shot=shot.id, frame=frame.id, err=generated.error)
        result = self._commit_or_rollback(
            shot.id, frame.id, generated, "is_generating",
            image_url=generated.value, prompt=prompt,
        )
        if result.success:
            log_event(_logger, "FRAME ok", shot=shot.id, frame=frame.id)
        return result

    def _precondition(self, operation: str, shot_id: str, message: str, frame_id: Optional[str] = None) -> OperationOutcome:
        log_event(_logger, f"{operation.upper()} precondition", shot=shot_id, frame=frame_id, msg=message)
        return OperationOutcome(
            operation=operation, shot_id=shot_id, frame_id=frame_id,
            status=OutcomeStatus.PRECONDITION, message=message,
        )

    def _credential_check(self, operation: str, shot_id: str, frame_id: Optional[str] = None) -> Optional[OperationOutcome]:
        if self.store.has_api_key:
            return None
        return OperationOutcome(
            operation=operation, shot_id=shot_id, frame_id=frame_id,
            status=OutcomeStatus.CREDENTIAL, message=MSG_NO_API_KEY,
        )

    @staticmethod
    def _summarize(operation: str, shot_id: str, frames: List[FrameResult], frame_id: Optional[str] = None) -> OperationOutcome:
        ok = sum(1 for f in frames if f.success)
        if ok == len(frames):
            status = OutcomeStatus.OK
        elif ok:
            status = OutcomeStatus.PARTIAL
        else:
            status = OutcomeStatus.FAILED
        errors = "; ".join(f"{f.role.value} {f.frame_id}: {f.error}" for f in frames if not f.success)
        return OperationOutcome(
            operation=operation, shot_id=shot_id, frame_id=frame_id,
            status=status, message=errors or None, frames=frames,
        )

    # =====================================================================
    # Operations
    # =====================================================================
    async def generate_endpoint_frames(self, shot_id: str) -> OperationOutcome:
        """
        Regenerate START then END of a shot.

        START is composed against the previous shot's END image (cross-shot
        continuity); END against the START image this call just produced
        (intra-shot continuity), which is why the two cannot run in parallel.
        """
        op = "generate_frames"
        denied = self._credential_check(op, shot_id)
        if denied:
            return denied

        shot = self.store.get_shot(shot_id)
        prev_end_ref = self._resolve_previous_end(shot_id)
        log_event(_logger, "GENERATE_FRAMES start", shot=shot_id, prev_end=prev_end_ref is not None)

        # both endpoints are reserved up front; END is rewritten once START lands
        for frame in (shot.start_frame, shot.end_frame):
            if frame:
                self.store.update_frame(shot_id, frame.id, is_generating=True)

        results: List[FrameResult] = []
        start_ref = shot.start_frame.image_url if shot.start_frame else None

        if shot.start_frame:
            start_result = await self._render_frame(shot, shot.start_frame, prev_end_ref)
            if start_result.success:
                start_ref = start_result.value
            results.append(FrameResult(
                frame_id=shot.start_frame.id, role=FrameRole.START,
                success=start_result.success, error=start_result.error,
            ))

        if shot.end_frame:
            end_result = await self._render_frame(shot, shot.end_frame, start_ref)
            results.append(FrameResult(
                frame_id=shot.end_frame.id, role=FrameRole.END,
                success=end_result.success, error=end_result.error,
            ))

        outcome = self._summarize(op, shot_id, results)
        log_event(_logger, "GENERATE_FRAMES done", shot=shot_id, status=outcome.status.value)
        return outcome

    async def generate_transition_frames(self, shot_id: str) -> OperationOutcome:
        """Swap in two MID frames interpolated between the shot's START and END images."""
        op = "generate_transitions"
        denied = self._credential_check(op, shot_id)
        if denied:
            return denied

        shot = self.store.get_shot(shot_id)
        start, end = shot.start_frame, shot.end_frame
        if not (start and start.image_url and end and end.image_url):
            return self._precondition(op, shot_id, MSG_NEED_ENDPOINTS)

        try:
            start_raw, end_raw = data_url_bytes(start.image_url), data_url_bytes(end.image_url)
        except ValueError:
            return self._precondition(op, shot_id, MSG_NEED_ENDPOINTS)

        mids = [new_frame(FrameRole.MID, is_generating=True) for _ in self.settings.TRANSITION_PROGRESS]
        self.store.replace_mid_frames(shot_id, mids)
        log_event(_logger, "TRANSITIONS start", shot=shot_id, mids=",".join(m.id for m in mids))

        guidance = (
            f"Shot Intent: {shot.description}.\n"
            f"Constraint: Maintain absolute visual consistency, color palette, lighting, and {STYLE_CONSTRAINT}"
        )

        async def render_mid(n: int, frame: Frame, progress: float) -> FrameResult:
            generated = await self._gateway_stage(
                lambda: self.gateway.synthesize_interpolated_image(start_raw, end_raw, guidance, progress)
            )
            if not generated.success:
                log_event(_logger, "TRANSITION failed", logging.ERROR, shot=shot_id, frame=frame.id, progress=progress, err=generated.error)
            result = self._commit_or_rollback(
                shot_id, frame.id, generated, "is_generating",
                image_url=generated.value, prompt=f"Transition frame {n}",
            )
            return FrameResult(frame_id=frame.id, role=FrameRole.MID, success=result.success, error=result.error)

        jobs = [render_mid(n, frame, p) for n, (frame, p) in enumerate(zip(mids, self.settings.TRANSITION_PROGRESS), start=1)]
        if self.settings.PARALLEL_TRANSITIONS:
            results = list(await asyncio.gather(*jobs))
        else:
            results = [await job for job in jobs]

        outcome = self._summarize(op, shot_id, results)
        log_event(_logger, "TRANSITIONS done", shot=shot_id, status=outcome.status.value)
        return outcome

    async def animate_frame(self, shot_id: str, frame_id: str) -> OperationOutcome:
        """Turn a generated frame into a short Veo clip. Requires image and prompt."""
        op = "animate"
        denied = self._credential_check(op, shot_id, frame_id)
        if denied:
            return denied

        frame = self.store.get_frame(shot_id, frame_id)
        if not (frame.image_url and frame.prompt):
            return self._precondition(op, shot_id, MSG_ANIMATE_NEEDS_PROMPT, frame_id)

        self.store.update_frame(shot_id, frame_id, is_animating=True)
        log_event(_logger, "ANIMATE start", shot=shot_id, frame=frame_id)
        entitlement = False
        try:
            handle = await self.gateway.animate_image(data_url_bytes(frame.image_url), frame.prompt)
            status = await poll_until_done(
                self.gateway.poll_animation,
                handle,
                interval_sec=self.settings.ANIMATION_POLL_SEC,
                timeout_sec=self.settings.ANIMATION_TIMEOUT_SEC,
                sleep=self._sleep,
            )
            video = await self.gateway.download_video(status.video_uri)
            result = StageResult.ok(to_data_url(video, "video/mp4"))
        except (GatewayError, ValueError) as e:
            entitlement = is_entitlement_error(e)
            result = StageResult.fail(str(e))
        except Exception as e:
            log_event(_logger, "ANIMATE unexpected", logging.ERROR, shot=shot_id, frame=frame_id, err=f"{type(e).__name__}: {e}")
            result = StageResult.fail(f"{type(e).__name__}: {e}")

        committed = self._commit_or_rollback(shot_id, frame_id, result, "is_animating", video_url=result.value)
        frames = [FrameResult(frame_id=frame_id, role=frame.role, success=committed.success, error=committed.error)]
        if committed.success:
            log_event(_logger, "ANIMATE ok", shot=shot_id, frame=frame_id)
            return OperationOutcome(operation=op, shot_id=shot_id, frame_id=frame_id, status=OutcomeStatus.OK, frames=frames)

        if entitlement:
            log_event(_logger, "ANIMATE entitlement", logging.ERROR, shot=shot_id, frame=frame_id, err=result.error)
            return OperationOutcome(
                operation=op, shot_id=shot_id, frame_id=frame_id,
                status=OutcomeStatus.ENTITLEMENT, message=MSG_ENTITLEMENT, frames=frames,
            )
        log_event(_logger, "ANIMATE failed", logging.ERROR, shot=shot_id, frame=frame_id, err=committed.error)
        return OperationOutcome(
            operation=op, shot_id=shot_id, frame_id=frame_id,
            status=OutcomeStatus.FAILED, message=committed.error, frames=frames,
        )

    async def edit_frame(self, shot_id: str, frame_id: str, instruction: str) -> OperationOutcome:
        op = "edit"
        denied = self._credential_check(op, shot_id, frame_id)
        if denied:
            return denied

        frame = self.store.get_frame(shot_id, frame_id)
        if not frame.image_url:
            return self._precondition(op, shot_id, MSG_EDIT_NEEDS_IMAGE, frame_id)
        if not safe_text(instruction):
            return self._precondition(op, shot_id, MSG_EDIT_NEEDS_TEXT, frame_id)

        self.store.update_frame(shot_id, frame_id, is_generating=True)
        log_event(_logger, "EDIT start", shot=shot_id, frame=frame_id)
        try:
            current = data_url_bytes(frame.image_url)
        except ValueError as e:
            edited = StageResult.fail(str(e))
        else:
            edited = await self._gateway_stage(
                lambda: self.gateway.edit_image(current, f"{safe_text(instruction)}. {EDIT_STYLE_SUFFIX}")
            )

        committed = self._commit_or_rollback(shot_id, frame_id, edited, "is_generating", image_url=edited.value)
        frames = [FrameResult(frame_id=frame_id, role=frame.role, success=committed.success, error=committed.error)]
        if not committed.success:
            log_event(_logger, "EDIT failed", logging.ERROR, shot=shot_id, frame=frame_id, err=committed.error)
        return self._summarize(op, shot_id, frames, frame_id)
