import pytest

from models.graph_models import (
    AssetNodeData,
    GraphEdge,
    NodeGraph,
    StartingNode,
    VideoAssetNode,
)
from models.timeline_models import (
    CompositionFilters,
    MediaMetadata,
    ModifyItemRequest,
    PlaceAssetRequest,
    ReorderingType,
    ReorderRequest,
    TimingMode,
    TrackKind,
)
from operators.drag_snap import DragPhase, begin_drag, compute_candidate
from operators.timeline_editor import (
    apply_composition_filters,
    clear_composition_filters,
    commit_drag,
    get_display_timeline,
    get_render_payload,
    modify_asset,
    place_asset,
    remove_item,
    reorder_items,
    sync_graph,
)
from operators.timeline_operator import (
    AssetNotFoundError,
    InvalidOperationError,
    VersionConflictError,
    get_timeline_snapshot_by_project,
)


def _graph() -> NodeGraph:
    def _video(node_id, duration):
        return VideoAssetNode(
            id=node_id,
            data=AssetNodeData(
                asset_id=f"asset-{node_id}",
                name=node_id,
                metadata=MediaMetadata(duration=duration),
            ),
        )

    return NodeGraph(
        nodes=[StartingNode(id="start"), _video("n1", 10), _video("n2", 5)],
        edges=[GraphEdge(source="start", target="n1"), GraphEdge(source="n1", target="n2")],
    )


def _place(db, project, asset, start_time=0.0, **kwargs):
    request = PlaceAssetRequest(
        asset_id=str(asset.asset_id),
        start_time=start_time,
        track_kind=kwargs.pop("track_kind", TrackKind.VIDEO),
        **kwargs,
    )
    return place_asset(db, project.project_id, request)


class TestPlaceAndModify:
    def test_place_creates_timeline_and_checkpoint(self, db, project, make_asset):
        edit = _place(db, project, make_asset(duration=5))
        assert edit.checkpoint.version == 1
        assert edit.result.track_id == "video-1"

        stored = get_timeline_snapshot_by_project(db, project.project_id)
        assert stored.version == 1
        assert stored.timeline.duration == 5

    def test_place_unknown_asset(self, db, project):
        with pytest.raises(AssetNotFoundError):
            place_asset(
                db,
                project.project_id,
                PlaceAssetRequest(asset_id="missing", start_time=0, track_kind=TrackKind.VIDEO),
            )

    def test_second_overlapping_placement_gets_new_track(self, db, project, make_asset):
        asset = make_asset(duration=5)
        _place(db, project, asset)
        edit = _place(db, project, asset)
        assert edit.result.created_track
        assert edit.result.track_id == "video-2"

    def test_modify_persists(self, db, project, make_asset):
        placed = _place(db, project, make_asset(duration=5))
        item_id = placed.result.item.id

        edit = modify_asset(db, project.project_id, item_id, ModifyItemRequest(opacity=0.5))
        assert edit.checkpoint.version == 2
        stored = get_timeline_snapshot_by_project(db, project.project_id).timeline
        assert stored.find_item(item_id)[1].opacity == 0.5

    def test_rejected_modify_writes_nothing(self, db, project, make_asset):
        placed = _place(db, project, make_asset(duration=5))
        with pytest.raises(InvalidOperationError):
            modify_asset(
                db,
                project.project_id,
                placed.result.item.id,
                ModifyItemRequest(start_time=4, end_time=1),
            )
        assert get_timeline_snapshot_by_project(db, project.project_id).version == 1

    def test_expected_version_is_enforced(self, db, project, make_asset):
        placed = _place(db, project, make_asset(duration=5))
        with pytest.raises(VersionConflictError):
            modify_asset(
                db,
                project.project_id,
                placed.result.item.id,
                ModifyItemRequest(volume=1.2),
                expected_version=0,
            )

    def test_remove(self, db, project, make_asset):
        placed = _place(db, project, make_asset(duration=5))
        edit = remove_item(db, project.project_id, placed.result.item.id)
        assert edit.timeline.all_items() == []
        assert edit.timeline.duration == 0


class TestReorderAndFilters:
    def test_sequential_reorder(self, db, project, make_asset):
        ids = []
        for start, duration in [(10, 2), (20, 3), (30, 4)]:
            ids.append(_place(db, project, make_asset(duration=duration), start).result.item.id)

        edit = reorder_items(
            db,
            project.project_id,
            ReorderRequest(
                reordering_type=ReorderingType.WITHIN_TRACK,
                track_id="video-1",
                item_order=ids,
                timing_mode=TimingMode.SEQUENTIAL,
                gap_duration=1,
            ),
        )
        assert [i.start_time for i in edit.result.reordered_items] == [0, 3, 7]
        assert edit.result.conflicts == []
        assert edit.timeline.duration == 11

    def test_within_track_requires_order(self, db, project):
        with pytest.raises(InvalidOperationError):
            reorder_items(
                db,
                project.project_id,
                ReorderRequest(reordering_type=ReorderingType.WITHIN_TRACK),
            )

    def test_filters_apply_and_clear(self, db, project):
        edit = apply_composition_filters(
            db, project.project_id, CompositionFilters(saturation=1.4)
        )
        assert edit.timeline.composition_filters.saturation == 1.4
        assert get_render_payload(db, project.project_id)["compositionFilters"] == {
            "saturation": 1.4
        }

        clear_composition_filters(db, project.project_id)
        assert "compositionFilters" not in get_render_payload(db, project.project_id)


class TestGraphReconciliation:
    def test_display_without_persisted_timeline(self, db, project):
        display = get_display_timeline(db, project.project_id, _graph())
        items = display.get_track("video-1").items
        assert [(i.id, i.start_time, i.end_time) for i in items] == [
            ("graph-n1", 0, 10),
            ("graph-n2", 10, 15),
        ]
        assert display.duration == 15

    def test_sync_promotes_once(self, db, project):
        first = sync_graph(db, project.project_id, _graph())
        assert [i.id for i in first.result] == ["n1", "n2"]
        assert first.checkpoint.version == 1

        second = sync_graph(db, project.project_id, _graph())
        assert second.result == []
        assert second.checkpoint is None
        assert get_timeline_snapshot_by_project(db, project.project_id).version == 1

    def test_display_after_sync_has_no_duplicates(self, db, project):
        sync_graph(db, project.project_id, _graph())
        once = get_display_timeline(db, project.project_id, _graph())
        ids = [i.id for i in once.all_items()]
        assert sorted(ids) == ["n1", "n2"]


class TestCommitDrag:
    def test_commits_snapped_position(self, db, project, make_asset):
        first = _place(db, project, make_asset(duration=5), 0).result.item.id
        second = _place(db, project, make_asset(duration=3), 10).result.item.id
        timeline = get_timeline_snapshot_by_project(db, project.project_id).timeline

        state = compute_candidate(begin_drag(timeline, second), timeline, -230)
        outcome = commit_drag(db, project.project_id, state)

        assert outcome.committed
        stored = get_timeline_snapshot_by_project(db, project.project_id).timeline
        dragged = stored.find_item(second)[1]
        assert (dragged.start_time, dragged.end_time) == (5, 8)
        assert stored.find_item(first)[1].start_time == 0

    def test_failed_commit_is_pending(self, db, project, make_asset):
        _place(db, project, make_asset(duration=5), 0)
        second = _place(db, project, make_asset(duration=3), 10).result.item.id
        timeline = get_timeline_snapshot_by_project(db, project.project_id).timeline

        state = compute_candidate(begin_drag(timeline, second), timeline, -230)
        outcome = commit_drag(db, project.project_id, state, expected_version=0)

        assert not outcome.committed
        assert "Version conflict" in outcome.error
        assert outcome.candidate_start == 5
        assert get_timeline_snapshot_by_project(db, project.project_id).version == 2

        retried = commit_drag(db, project.project_id, outcome.state, expected_version=2)
        assert retried.committed

    def test_snap_onto_neighbor_start_stays_pending(self, db, project, make_asset):
        _place(db, project, make_asset(duration=5), 0)
        second = _place(db, project, make_asset(duration=3), 10).result.item.id
        timeline = get_timeline_snapshot_by_project(db, project.project_id).timeline

        # 9.8s left lands within snap range of the first item's start
        state = compute_candidate(begin_drag(timeline, second), timeline, -490)
        assert state.candidate_start == 0

        outcome = commit_drag(db, project.project_id, state)
        assert not outcome.committed
        assert "time conflict detected" in outcome.error
        assert outcome.candidate_start == 0
        assert outcome.state.phase == DragPhase.DRAGGING
        assert get_timeline_snapshot_by_project(db, project.project_id).version == 2
