from models.timeline_models import (
    CompositionFilters,
    ItemKind,
    TimelineData,
    TimelineItem,
    TimelineTrack,
    TrackKind,
)
from operators.timeline_merge import merge_timelines, promote_ephemeral_items


def _item(item_id, start, end, track_id="video-1"):
    return TimelineItem(
        id=item_id,
        kind=ItemKind.VIDEO,
        start_time=start,
        end_time=end,
        asset_end_time=end - start,
        track_id=track_id,
    )


def _timeline(*tracks, **kwargs) -> TimelineData:
    timeline = TimelineData(tracks=list(tracks), **kwargs)
    timeline.recompute_duration()
    return timeline


def _video_track(track_id="video-1", items=()):
    return TimelineTrack(id=track_id, kind=TrackKind.VIDEO, name=track_id, items=list(items))


def _ephemeral():
    return _timeline(
        _video_track("video-1", [_item("graph-a", 0, 10), _item("graph-b", 10, 15)]),
        _video_track("video-2"),
    )


class TestMergeTimelines:
    def test_absent_persisted_uses_skeleton(self):
        merged = merge_timelines(None, _ephemeral())
        assert [t.id for t in merged.tracks] == ["video-1", "audio-1", "video-2"]
        assert [i.id for i in merged.get_track("video-1").items] == ["graph-a", "graph-b"]
        assert merged.duration == 15

    def test_persisted_items_come_first_and_sorted(self):
        persisted = _timeline(_video_track("video-1", [_item("item-x", 20, 25)]))
        merged = merge_timelines(persisted, _ephemeral())
        assert [i.id for i in merged.get_track("video-1").items] == [
            "graph-a", "graph-b", "item-x",
        ]
        assert merged.duration == 25

    def test_promoted_items_are_not_duplicated(self):
        persisted = _timeline(_video_track("video-1", [_item("a", 0, 10)]))
        merged = merge_timelines(persisted, _ephemeral())
        assert [i.id for i in merged.get_track("video-1").items] == ["a", "graph-b"]

    def test_persisted_ephemeral_id_counts_as_represented(self):
        persisted = _timeline(_video_track("video-1", [_item("graph-a", 3, 13)]))
        merged = merge_timelines(persisted, _ephemeral())
        ids = [i.id for i in merged.get_track("video-1").items]
        assert ids.count("graph-a") == 1

    def test_merge_is_idempotent(self):
        persisted = _timeline(_video_track("video-1", [_item("a", 0, 10)]))
        once = merge_timelines(persisted, _ephemeral())
        twice = merge_timelines(once, _ephemeral())
        assert twice.model_dump() == once.model_dump()

    def test_inputs_are_not_mutated(self):
        persisted = _timeline(_video_track("video-1", [_item("item-x", 20, 25)]))
        ephemeral = _ephemeral()
        before = (persisted.model_dump(), ephemeral.model_dump())
        merge_timelines(persisted, ephemeral)
        assert (persisted.model_dump(), ephemeral.model_dump()) == before

    def test_keeps_persisted_scale_and_filters(self):
        persisted = _timeline(
            _video_track("video-1"),
            timeline_scale=80,
            composition_filters=CompositionFilters(contrast=1.4),
        )
        merged = merge_timelines(persisted, _ephemeral())
        assert merged.timeline_scale == 80
        assert merged.composition_filters.contrast == 1.4


class TestPromoteEphemeralItems:
    def test_promotes_under_stable_id(self):
        synced, promoted = promote_ephemeral_items(None, _ephemeral())
        assert [i.id for i in promoted] == ["a", "b"]
        assert [i.id for i in synced.get_track("video-1").items] == ["a", "b"]
        assert synced.duration == 15

    def test_second_sync_promotes_nothing(self):
        synced, _ = promote_ephemeral_items(None, _ephemeral())
        again, promoted = promote_ephemeral_items(synced, _ephemeral())
        assert promoted == []
        assert again.model_dump() == synced.model_dump()

    def test_merge_after_sync_shows_no_ephemeral_items(self):
        synced, _ = promote_ephemeral_items(None, _ephemeral())
        merged = merge_timelines(synced, _ephemeral())
        assert not any(item.is_ephemeral for item in merged.all_items())
