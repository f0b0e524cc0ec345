"""
Tests for frameflow/services/store.py
"""
import pytest

from frameflow.model.board import FrameRole
from frameflow.services.store import (
    DEFAULT_DESCRIPTION,
    DEFAULT_VISUAL_REFERENCE,
    DEMO_SHOTS,
    BoardStore,
    FrameNotFound,
    KeyframeInvariantError,
    ShotNotFound,
    new_frame,
    new_shot,
)

from conftest import image_url


class TestShotCreation:
    def test_create_shot_defaults(self, store):
        shot = store.create_shot()

        assert shot.index == 1
        assert shot.description == DEFAULT_DESCRIPTION
        assert shot.visual_reference == DEFAULT_VISUAL_REFERENCE
        assert [f.role for f in shot.keyframes] == [FrameRole.START, FrameRole.END]
        assert all(f.image_url is None and not f.is_busy for f in shot.keyframes)

    def test_indexes_follow_sequence(self, store):
        first = store.create_shot("one")
        second = store.create_shot("two")

        assert (first.index, second.index) == (1, 2)
        assert [s.id for s in store.snapshot().shots] == [first.id, second.id]

    def test_new_shot_frame_ids_derive_from_shot_id(self):
        shot = new_shot(1, "desc", "ref", shot_id="s1")

        assert [f.id for f in shot.keyframes] == ["s1a", "s1b"]

    def test_seed_demo_shots(self, store):
        seeded = store.seed_demo_shots()

        assert len(seeded) == len(DEMO_SHOTS)
        assert [s.description for s in seeded] == [d for d, _ in DEMO_SHOTS]


class TestReads:
    def test_snapshot_is_a_copy(self, store):
        shot = store.create_shot()
        snap = store.snapshot()
        snap.shots[0].keyframes[0].image_url = "data:image/png;base64,AAAA"

        assert store.get_shot(shot.id).start_frame.image_url is None

    def test_unknown_ids_raise(self, store):
        shot = store.create_shot()

        with pytest.raises(ShotNotFound):
            store.get_shot("missing")
        with pytest.raises(FrameNotFound):
            store.get_frame(shot.id, "missing")

    def test_previous_shot_uses_sequence_position(self, store):
        a = store.create_shot("a")
        b = store.create_shot("b")

        assert store.previous_shot(a.id) is None
        assert store.previous_shot(b.id).id == a.id

    def test_find_frame_by_role(self, store):
        shot = store.create_shot()

        assert store.find_frame_by_role(shot.id, FrameRole.END).id == shot.end_frame.id
        assert store.find_frame_by_role(shot.id, FrameRole.MID) is None


class TestUpdateFrame:
    def test_only_target_frame_changes(self, store):
        shot = store.create_shot()
        updated = store.update_frame(shot.id, shot.start_frame.id, image_url=image_url("s"), prompt="p")

        after = store.get_shot(shot.id)
        assert updated.image_url == image_url("s")
        assert after.start_frame.prompt == "p"
        assert after.end_frame == shot.end_frame

    def test_unknown_field_rejected(self, store):
        shot = store.create_shot()

        with pytest.raises(ValueError):
            store.update_frame(shot.id, shot.start_frame.id, role=FrameRole.END)

    def test_unknown_frame(self, store):
        shot = store.create_shot()

        with pytest.raises(FrameNotFound):
            store.update_frame(shot.id, "nope", is_generating=True)


class TestReplaceMidFrames:
    def test_mids_sit_between_endpoints(self, store):
        shot = store.create_shot()
        mids = [new_frame(FrameRole.MID), new_frame(FrameRole.MID)]

        updated = store.replace_mid_frames(shot.id, mids)

        assert [f.role for f in updated.keyframes] == [FrameRole.START, FrameRole.MID, FrameRole.MID, FrameRole.END]
        assert [f.id for f in updated.mid_frames] == [m.id for m in mids]

    def test_replacing_drops_previous_mids(self, store):
        shot = store.create_shot()
        store.replace_mid_frames(shot.id, [new_frame(FrameRole.MID), new_frame(FrameRole.MID)])
        fresh = [new_frame(FrameRole.MID), new_frame(FrameRole.MID)]

        updated = store.replace_mid_frames(shot.id, fresh)

        assert len(updated.keyframes) == 4
        assert [f.id for f in updated.mid_frames] == [f.id for f in fresh]

    def test_rejects_non_mid_frames(self, store):
        shot = store.create_shot()

        with pytest.raises(KeyframeInvariantError):
            store.replace_mid_frames(shot.id, [new_frame(FrameRole.START)])


class TestAppendShots:
    def test_batch_is_all_or_nothing(self, store):
        existing = store.create_shot()
        good = new_shot(2, "good", "ref")
        clash = new_shot(3, "clash", "ref", shot_id=existing.id)

        with pytest.raises(KeyframeInvariantError):
            store.append_shots([good, clash])

        assert store.shot_count() == 1

    def test_empty_batch_is_a_no_op(self, store):
        calls = []
        store.subscribe(calls.append)

        assert store.append_shots([]) == []
        assert calls == []


class TestShotDetails:
    def test_none_values_are_ignored(self, store):
        shot = store.create_shot("before", "style")

        updated = store.update_shot_details(shot.id, description="after", visual_reference=None)

        assert updated.description == "after"
        assert updated.visual_reference == "style"

    def test_unknown_field_rejected(self, store):
        shot = store.create_shot()

        with pytest.raises(ValueError):
            store.update_shot_details(shot.id, index=9)


class TestListeners:
    def test_subscribers_get_snapshots_until_unsubscribed(self, store):
        seen = []
        unsubscribe = store.subscribe(seen.append)

        store.set_global_loading(True)
        unsubscribe()
        store.set_global_loading(False)

        assert len(seen) == 1
        assert seen[0].is_global_loading is True

    def test_api_key_flag(self):
        store = BoardStore()
        assert store.has_api_key is False

        store.set_api_key(True)

        assert store.snapshot().has_api_key is True


def test_frame_dump_carries_display_fields():
    frame = new_frame(FrameRole.START, image_url=image_url("S"), is_generating=True)

    dumped = frame.model_dump()

    assert dumped["display_url"] == image_url("S")
    assert dumped["is_busy"] is True
