import pytest

from models.timeline_models import (
    ItemKind,
    ModifyItemRequest,
    Overlay,
    OverlayPatch,
    TimelineData,
    TimelineItem,
    TimelineTrack,
    TrackKind,
)
from operators.modification_engine import modify_item, remove_item
from operators.timeline_operator import (
    InvalidOperationError,
    ItemNotFoundError,
    OverlayBoundsError,
    TrackConflictError,
    TrackNotFoundError,
)


def _item(item_id, start, end, track_id="video-1", kind=ItemKind.VIDEO, **kwargs):
    return TimelineItem(
        id=item_id,
        kind=kind,
        name=kwargs.pop("name", item_id.upper()),
        start_time=start,
        end_time=end,
        asset_end_time=end - start,
        track_id=track_id,
        **kwargs,
    )


@pytest.fixture
def timeline() -> TimelineData:
    timeline = TimelineData(tracks=[
        TimelineTrack(id="video-1", kind=TrackKind.VIDEO, name="Video 1", items=[
            _item("a", 0, 5),
            _item("b", 5, 10),
        ]),
        TimelineTrack(id="video-2", kind=TrackKind.VIDEO, name="Video 2", items=[
            _item("c", 0, 4, track_id="video-2"),
        ]),
        TimelineTrack(id="audio-1", kind=TrackKind.AUDIO, name="Audio 1", items=[
            _item("m", 0, 20, track_id="audio-1", kind=ItemKind.AUDIO),
        ]),
    ])
    timeline.recompute_duration()
    return timeline


class TestModifyItem:
    def test_volume_only(self, timeline):
        result = modify_item(timeline, "m", ModifyItemRequest(volume=1.5))
        assert result.item.volume == 1.5
        assert (result.item.start_time, result.item.end_time) == (0, 20)
        assert result.message == 'Successfully modified "M": volume 1.5'

    def test_start_only_patch_leaves_end(self, timeline):
        result = modify_item(timeline, "b", ModifyItemRequest(start_time=6))
        assert (result.item.start_time, result.item.end_time) == (6, 10)
        assert result.item.duration == 4

    def test_start_past_end_rejected(self, timeline):
        with pytest.raises(InvalidOperationError):
            modify_item(timeline, "b", ModifyItemRequest(start_time=12))

    def test_duration_recomputed_after_trim(self, timeline):
        modify_item(timeline, "m", ModifyItemRequest(end_time=8))
        assert timeline.duration == 10

    def test_rejects_inverted_times(self, timeline):
        with pytest.raises(InvalidOperationError):
            modify_item(timeline, "a", ModifyItemRequest(start_time=3, end_time=2))

    def test_rejects_inverted_trim(self, timeline):
        with pytest.raises(InvalidOperationError):
            modify_item(timeline, "a", ModifyItemRequest(asset_start_time=5))

    def test_overlay_exceeding_canvas_width(self, timeline):
        before = timeline.model_dump()
        with pytest.raises(OverlayBoundsError):
            modify_item(
                timeline,
                "a",
                ModifyItemRequest(overlay=OverlayPatch(x=1800, y=0, width=200, height=100)),
            )
        assert timeline.model_dump() == before

    def test_partial_overlay_patch_merges(self, timeline):
        timeline.get_track("video-1").items[0].overlay = Overlay(x=10, y=10, width=100, height=100)
        result = modify_item(timeline, "a", ModifyItemRequest(overlay=OverlayPatch(x=50)))
        assert result.item.overlay.model_dump() == {
            "x": 50, "y": 10, "width": 100, "height": 100, "z_index": None,
        }

    def test_new_overlay_needs_size(self, timeline):
        with pytest.raises(InvalidOperationError):
            modify_item(timeline, "a", ModifyItemRequest(overlay=OverlayPatch(x=5)))

    def test_audio_item_cannot_take_overlay(self, timeline):
        with pytest.raises(InvalidOperationError):
            modify_item(
                timeline,
                "m",
                ModifyItemRequest(overlay=OverlayPatch(x=0, y=0, width=10, height=10)),
            )

    def test_move_to_track_by_id(self, timeline):
        result = modify_item(
            timeline, "b", ModifyItemRequest(move_to_track_id="video-2")
        )
        assert result.item.track_id == "video-2"
        assert [i.id for i in timeline.get_track("video-2").items] == ["c", "b"]
        assert [i.id for i in timeline.get_track("video-1").items] == ["a"]

    def test_move_to_busy_track_conflicts(self, timeline):
        before = timeline.model_dump()
        with pytest.raises(TrackConflictError) as exc_info:
            modify_item(timeline, "a", ModifyItemRequest(move_to_track_id="video-2"))
        assert str(exc_info.value) == "Cannot move to track video-2: time conflict detected"
        assert timeline.model_dump() == before

    def test_move_to_unknown_track(self, timeline):
        with pytest.raises(TrackNotFoundError):
            modify_item(timeline, "a", ModifyItemRequest(move_to_track_id="video-9"))

    def test_move_to_incompatible_track(self, timeline):
        with pytest.raises(InvalidOperationError):
            modify_item(timeline, "a", ModifyItemRequest(move_to_track_id="audio-1"))

    def test_move_by_kind_creates_track_when_all_busy(self, timeline):
        result = modify_item(
            timeline,
            "a",
            ModifyItemRequest(start_time=1, end_time=6, move_to_track_kind=TrackKind.VIDEO),
        )
        assert result.item.track_id == "video-3"
        assert timeline.get_track("video-3").name == "Video 3"

    def test_move_by_kind_prefers_free_track(self, timeline):
        result = modify_item(
            timeline,
            "b",
            ModifyItemRequest(move_to_track_kind=TrackKind.VIDEO),
        )
        # its own track is free once the item itself is excluded
        assert result.item.track_id == "video-1"

    def test_overlap_on_same_track_rejected(self, timeline):
        with pytest.raises(TrackConflictError):
            modify_item(timeline, "b", ModifyItemRequest(start_time=3))

    def test_ephemeral_items_rejected(self, timeline):
        timeline.get_track("video-2").items.append(_item("graph-n", 10, 12, track_id="video-2"))
        with pytest.raises(InvalidOperationError):
            modify_item(timeline, "graph-n", ModifyItemRequest(volume=1))

    def test_unknown_item(self, timeline):
        with pytest.raises(ItemNotFoundError):
            modify_item(timeline, "nope", ModifyItemRequest(volume=1))


class TestRemoveItem:
    def test_removes_and_recomputes_duration(self, timeline):
        removed = remove_item(timeline, "m")
        assert removed.id == "m"
        assert timeline.find_item("m") is None
        assert timeline.duration == 10

    def test_unknown_item(self, timeline):
        with pytest.raises(ItemNotFoundError):
            remove_item(timeline, "nope")
