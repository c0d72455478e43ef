import pytest

from models.timeline_models import (
    ItemKind,
    TimelineData,
    TimelineItem,
    TimelineTrack,
    TrackKind,
)
from operators.drag_snap import (
    DragPhase,
    begin_drag,
    cancel_drag,
    compute_candidate,
    end_drag,
    snap_to_grid,
    snap_to_neighbor,
)
from operators.timeline_operator import ItemNotFoundError, TrackConflictError


def _item(item_id, start, end, track_id):
    return TimelineItem(
        id=item_id,
        kind=ItemKind.VIDEO,
        start_time=start,
        end_time=end,
        asset_end_time=end - start,
        track_id=track_id,
    )


@pytest.fixture
def timeline() -> TimelineData:
    # scale 50 px/s; the same layout on the main track and on video-2
    return TimelineData(
        timeline_scale=50,
        tracks=[
            TimelineTrack(id="video-1", kind=TrackKind.VIDEO, name="Video 1", items=[
                _item("a", 0, 5, "video-1"),
                _item("b", 10, 13, "video-1"),
                _item("graph-g", 20, 22, "video-1"),
            ]),
            TimelineTrack(id="video-2", kind=TrackKind.VIDEO, name="Video 2", items=[
                _item("c", 0, 5, "video-2"),
                _item("d", 10, 13, "video-2"),
            ]),
        ],
    )


def _px(seconds: float, scale: float = 50) -> float:
    return seconds * scale


class TestBeginDrag:
    def test_captures_origin(self, timeline):
        state = begin_drag(timeline, "b")
        assert state.phase == DragPhase.DRAGGING
        assert (state.origin_start, state.duration, state.candidate_start) == (10, 3, 10)
        assert state.on_main_track
        assert not state.is_ephemeral

    def test_non_main_track(self, timeline):
        assert not begin_drag(timeline, "d").on_main_track

    def test_unknown_item(self, timeline):
        with pytest.raises(ItemNotFoundError):
            begin_drag(timeline, "zzz")


class TestComputeCandidate:
    def test_snaps_to_neighbor_end_on_main_track(self, timeline):
        state = begin_drag(timeline, "b")
        state = compute_candidate(state, timeline, _px(-4.6))
        assert state.candidate_start == 5

    def test_same_offset_on_other_track_does_not_snap(self, timeline):
        state = begin_drag(timeline, "d")
        state = compute_candidate(state, timeline, _px(-4.6))
        assert state.candidate_start == pytest.approx(5.4)

    def test_implied_end_snaps_to_neighbor_start(self, timeline):
        # a [0,5) dragged so its end lands 0.3s before b starts at 10
        state = begin_drag(timeline, "a")
        state = compute_candidate(state, timeline, _px(4.7))
        assert state.candidate_start == 5
        assert state.candidate_end == 10

    def test_grid_snap_when_no_neighbor_in_range(self, timeline):
        state = begin_drag(timeline, "b")
        state = compute_candidate(state, timeline, _px(4.2))
        assert state.candidate_start == 14

    def test_no_grid_snap_outside_threshold(self, timeline):
        state = begin_drag(timeline, "b")
        state = compute_candidate(state, timeline, _px(4.6))
        assert state.candidate_start == pytest.approx(14.6)

    def test_clamped_at_zero(self, timeline):
        state = begin_drag(timeline, "d")
        state = compute_candidate(state, timeline, _px(-50))
        assert state.candidate_start == 0

    def test_delta_is_relative_to_origin(self, timeline):
        state = begin_drag(timeline, "d")
        state = compute_candidate(state, timeline, _px(2))
        state = compute_candidate(state, timeline, _px(1))
        assert state.candidate_start == pytest.approx(11)

    def test_does_not_mutate_timeline(self, timeline):
        before = timeline.model_dump()
        state = begin_drag(timeline, "b")
        compute_candidate(state, timeline, _px(-4.6))
        assert timeline.model_dump() == before

    def test_idle_state_is_unchanged(self, timeline):
        idle = cancel_drag(begin_drag(timeline, "b"))
        assert compute_candidate(idle, timeline, 100) is idle


class TestSnapRules:
    def test_first_match_in_neighbor_order_wins(self):
        # both neighbors are in range; the first listed wins
        assert snap_to_neighbor(5.2, 1, [(5.6, 8), (0, 5)]) == 5.6

    def test_implied_end_snap_never_goes_negative(self):
        assert snap_to_neighbor(0.1, 2, [(1.8, 3)]) == 0

    def test_grid(self):
        assert snap_to_grid(2.75) == 3
        assert snap_to_grid(2.7) == pytest.approx(2.7)


class TestEndDrag:
    def test_commits_candidate(self, timeline):
        calls = []
        state = compute_candidate(begin_drag(timeline, "b"), timeline, _px(-4.6))
        outcome = end_drag(state, commit=lambda item_id, start: calls.append((item_id, start)))
        assert outcome.committed
        assert outcome.state.phase == DragPhase.IDLE
        assert calls == [("b", 5)]

    def test_ephemeral_items_are_never_committed(self, timeline):
        calls = []
        state = compute_candidate(begin_drag(timeline, "graph-g"), timeline, _px(5))
        outcome = end_drag(state, commit=lambda *args: calls.append(args))
        assert not outcome.committed
        assert calls == []

    def test_unchanged_position_is_not_committed(self, timeline):
        calls = []
        state = compute_candidate(begin_drag(timeline, "d"), timeline, 0)
        outcome = end_drag(state, commit=lambda *args: calls.append(args))
        assert not outcome.committed
        assert calls == []

    def test_failed_commit_stays_pending(self, timeline):
        def _fail(item_id, start):
            raise TrackConflictError("video-1", ["a"])

        state = compute_candidate(begin_drag(timeline, "b"), timeline, _px(-4.6))
        outcome = end_drag(state, commit=_fail)
        assert not outcome.committed
        assert outcome.error
        assert outcome.candidate_start == 5
        assert outcome.state == state

        retried = end_drag(outcome.state, commit=lambda *args: None)
        assert retried.committed

    def test_cancel_returns_to_idle(self, timeline):
        state = cancel_drag(begin_drag(timeline, "b"))
        assert state.phase == DragPhase.IDLE
        assert not end_drag(state, commit=lambda *args: None).committed
