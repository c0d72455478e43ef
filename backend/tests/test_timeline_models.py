import pytest
from pydantic import ValidationError

from models.graph_models import DraftNode, NodeGraph, VideoAssetNode
from models.timeline_models import (
    ItemKind,
    TimelineData,
    TimelineItem,
    TimelineTrack,
    TrackKind,
)


def _item(item_id="a", start=0.0, end=5.0, track_id="video-1", **kwargs):
    return TimelineItem(
        id=item_id,
        kind=kwargs.pop("kind", ItemKind.VIDEO),
        start_time=start,
        end_time=end,
        asset_start_time=0.0,
        asset_end_time=end - start,
        track_id=track_id,
        **kwargs,
    )


class TestTimelineItem:
    def test_end_must_follow_start(self):
        with pytest.raises(ValidationError):
            _item(start=5.0, end=5.0)

    def test_trim_window_must_be_positive(self):
        with pytest.raises(ValidationError):
            TimelineItem(
                id="a",
                kind=ItemKind.VIDEO,
                start_time=0,
                end_time=5,
                asset_start_time=3,
                asset_end_time=2,
                track_id="video-1",
            )

    def test_volume_and_opacity_ranges(self):
        assert _item(volume=2.0, opacity=0.0).volume == 2.0
        with pytest.raises(ValidationError):
            _item(volume=2.5)
        with pytest.raises(ValidationError):
            _item(opacity=1.1)

    def test_half_open_overlap(self):
        item = _item(start=0, end=5)
        assert item.overlaps(4.9, 6)
        assert not item.overlaps(5, 8)

    def test_ephemeral_prefix(self):
        assert _item(item_id="graph-n1").is_ephemeral
        assert not _item(item_id="item-1").is_ephemeral

    def test_accepts_camel_case_and_serializes_camel_case(self):
        item = TimelineItem.model_validate({
            "id": "a",
            "kind": "image",
            "startTime": 1,
            "endTime": 3,
            "assetStartTime": 0,
            "assetEndTime": 2,
            "trackId": "video-1",
            "overlay": {"x": 0, "y": 0, "width": 100, "height": 50, "zIndex": 2},
        })
        wire = item.to_wire()
        assert wire["startTime"] == 1
        assert wire["trackId"] == "video-1"
        assert wire["overlay"]["zIndex"] == 2
        assert "volume" not in wire

    def test_image_and_draft_are_video_kind(self):
        assert ItemKind.IMAGE.track_kind == TrackKind.VIDEO
        assert ItemKind.DRAFT.track_kind == TrackKind.VIDEO
        assert ItemKind.AUDIO.track_kind == TrackKind.AUDIO


class TestTimelineData:
    def test_empty_skeleton(self):
        timeline = TimelineData.create_empty()
        assert [t.id for t in timeline.tracks] == ["video-1", "audio-1"]
        assert timeline.duration == 0
        assert timeline.timeline_scale == 50

    def test_recompute_duration_uses_max_end(self):
        timeline = TimelineData(tracks=[
            TimelineTrack(id="video-1", kind=TrackKind.VIDEO, name="Video 1",
                          items=[_item("a", 0, 5), _item("b", 5, 12)]),
            TimelineTrack(id="audio-1", kind=TrackKind.AUDIO, name="Audio 1",
                          items=[_item("c", 2, 9, track_id="audio-1", kind=ItemKind.AUDIO)]),
        ])
        assert timeline.recompute_duration() == 12

    def test_main_track_is_first_video_track(self):
        timeline = TimelineData(tracks=[
            TimelineTrack(id="audio-1", kind=TrackKind.AUDIO, name="Audio 1"),
            TimelineTrack(id="video-3", kind=TrackKind.VIDEO, name="Video 3"),
            TimelineTrack(id="video-1", kind=TrackKind.VIDEO, name="Video 1"),
        ])
        assert timeline.main_track.id == "video-3"

    def test_find_item(self):
        timeline = TimelineData(tracks=[
            TimelineTrack(id="video-1", kind=TrackKind.VIDEO, name="Video 1",
                          items=[_item("a")]),
        ])
        track, item = timeline.find_item("a")
        assert track.id == "video-1"
        assert item.id == "a"
        assert timeline.find_item("missing") is None


class TestNodeGraph:
    def test_nodes_are_discriminated_by_kind(self):
        graph = NodeGraph.model_validate({
            "nodes": [
                {"id": "s", "kind": "starting"},
                {"id": "v", "kind": "video_asset",
                 "data": {"assetId": "asset-1", "name": "Intro",
                          "metadata": {"duration": 12}}},
                {"id": "d", "kind": "draft",
                 "data": {"title": "Idea", "estimatedDuration": 4}},
            ],
            "edges": [{"source": "s", "target": "v"}],
        })
        assert isinstance(graph.nodes[1], VideoAssetNode)
        assert graph.nodes[1].data.metadata.duration == 12
        assert isinstance(graph.nodes[2], DraftNode)

    def test_unknown_node_kind_is_rejected(self):
        with pytest.raises(ValidationError):
            NodeGraph.model_validate({"nodes": [{"id": "x", "kind": "sticker"}]})
