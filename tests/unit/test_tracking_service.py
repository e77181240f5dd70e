"""Unit tests for the tracking session service over in-memory repositories."""

import pytest

from tracklines.core.enums import EntityKind, LineState, UpdateKind
from tracklines.core.errors import NotFoundError, ValidationError
from tracklines.events.schemas import TrackerUpdate
from tracklines.services.tracking_service import TrackingService


def published(channel):
    return [m for m in channel.drain_nowait() if isinstance(m, TrackerUpdate)]


@pytest.mark.unit
class TestTrackers:
    """Tracker creation, listing, renaming and deletion."""

    @pytest.mark.asyncio
    async def test_create_tracker_publishes_created_entry(self, service, channel):
        view = await service.create_tracker("Writing")

        assert view.id == 1
        assert view.label == "Writing"
        assert view.is_deleted is False

        updates = published(channel)
        assert len(updates) == 1
        assert updates[0].kind == UpdateKind.CREATED
        assert updates[0].entity == EntityKind.ENTRY
        assert updates[0].payload == view

    @pytest.mark.asyncio
    @pytest.mark.parametrize("label", ["", "   ", "\t\n"])
    async def test_create_tracker_rejects_blank_label(self, service, channel, label):
        with pytest.raises(ValidationError) as exc_info:
            await service.create_tracker(label)

        assert exc_info.value.entity == "tracker"
        assert await service.get_trackers() == []
        assert published(channel) == []

    @pytest.mark.asyncio
    async def test_get_trackers_newest_first(self, service, clock):
        await service.create_tracker("Reading")
        clock.advance(seconds=1)
        await service.create_tracker("Writing")

        labels = [t.label for t in await service.get_trackers()]
        assert labels == ["Writing", "Reading"]

    @pytest.mark.asyncio
    async def test_get_trackers_ties_broken_by_id(self, service):
        await service.create_tracker("A")
        await service.create_tracker("B")

        ids = [t.id for t in await service.get_trackers()]
        assert ids == [2, 1]

    @pytest.mark.asyncio
    async def test_get_trackers_is_idempotent(self, service):
        await service.create_tracker("Writing")
        await service.create_tracker("Reading")

        first = await service.get_trackers()
        second = await service.get_trackers()
        assert first == second

    @pytest.mark.asyncio
    async def test_rename_tracker(self, service, channel, clock):
        tracker = await service.create_tracker("Writting")
        channel.drain_nowait()
        clock.advance(seconds=30)

        renamed = await service.rename_tracker(tracker.id, "Writing")

        assert renamed.label == "Writing"
        assert renamed.updated_at > tracker.updated_at
        updates = published(channel)
        assert [u.kind for u in updates] == [UpdateKind.UPDATED]

    @pytest.mark.asyncio
    async def test_rename_tracker_errors(self, service):
        tracker = await service.create_tracker("Writing")

        with pytest.raises(ValidationError):
            await service.rename_tracker(tracker.id, " ")
        with pytest.raises(NotFoundError):
            await service.rename_tracker(99, "Nope")

    @pytest.mark.asyncio
    async def test_delete_tracker_hides_tracker_and_lines(self, service, memory_repos):
        tracker = await service.create_tracker("Writing")
        other = await service.create_tracker("Reading")
        line = await service.start_tracking(tracker.id, "draft")
        kept = await service.start_tracking(other.id, "chapter 1")

        await service.delete_tracker(tracker.id)

        assert [t.id for t in await service.get_trackers()] == [other.id]
        assert [l.id for l in await service.get_tracker_lines()] == [kept.id]

        # Rows stay retrievable by direct lookup, marked deleted
        entry = await memory_repos.entry.get_by_id(tracker.id, include_deleted=True)
        stored_line = await memory_repos.line.get_by_id(line.id, include_deleted=True)
        assert entry.is_deleted is True
        assert stored_line.is_deleted is True
        assert await memory_repos.duration.list_for_line(line.id) == []

    @pytest.mark.asyncio
    async def test_delete_tracker_publishes_lines_then_entry(self, service, channel):
        tracker = await service.create_tracker("Writing")
        first = await service.start_tracking(tracker.id, "draft")
        second = await service.start_tracking(tracker.id, "edit")
        channel.drain_nowait()

        await service.delete_tracker(tracker.id)

        updates = published(channel)
        assert [u.entity for u in updates] == [EntityKind.LINE, EntityKind.LINE, EntityKind.ENTRY]
        assert {u.entity_id for u in updates[:2]} == {first.id, second.id}
        assert all(u.kind == UpdateKind.UPDATED for u in updates)
        assert all(u.payload.is_deleted for u in updates)

    @pytest.mark.asyncio
    async def test_delete_tracker_not_found(self, service):
        with pytest.raises(NotFoundError) as exc_info:
            await service.delete_tracker(42)
        assert str(exc_info.value) == "Tracker with id 42 not found"

    @pytest.mark.asyncio
    async def test_delete_tracker_twice(self, service):
        tracker = await service.create_tracker("Writing")
        await service.delete_tracker(tracker.id)

        with pytest.raises(NotFoundError):
            await service.delete_tracker(tracker.id)


@pytest.mark.unit
class TestLineLifecycle:
    """Start, stop, resume, update and remove."""

    @pytest.mark.asyncio
    async def test_start_tracking_creates_running_line(self, service, channel):
        tracker = await service.create_tracker("Writing")
        channel.drain_nowait()

        line = await service.start_tracking(tracker.id, "draft")

        assert line.entry_id == tracker.id
        assert line.desc == "draft"
        assert line.state == LineState.RUNNING
        assert len(line.durations) == 1
        assert line.durations[0].ended_at is None
        assert line.active_duration == line.durations[0]

        updates = published(channel)
        assert len(updates) == 1
        assert updates[0].kind == UpdateKind.CREATED
        assert updates[0].entity == EntityKind.LINE

    @pytest.mark.asyncio
    async def test_start_tracking_unknown_tracker(self, service, memory_store):
        with pytest.raises(NotFoundError):
            await service.start_tracking(7, "draft")
        assert memory_store.lines == {}

    @pytest.mark.asyncio
    async def test_start_tracking_deleted_tracker(self, service):
        tracker = await service.create_tracker("Writing")
        await service.delete_tracker(tracker.id)

        with pytest.raises(NotFoundError):
            await service.start_tracking(tracker.id, "draft")

    @pytest.mark.asyncio
    async def test_start_stop_round_trip(self, service, clock):
        tracker = await service.create_tracker("Writing")
        line = await service.start_tracking(tracker.id, "draft")
        clock.advance(minutes=25)

        stopped = await service.stop_tracking(line.id)

        assert stopped.state == LineState.PAUSED
        assert len(stopped.durations) == 1
        segment = stopped.durations[0]
        assert segment.ended_at is not None
        assert segment.ended_at >= segment.started_at
        assert stopped.elapsed_seconds == 25 * 60

        history = await service.get_tracker_lines()
        assert len(history) == 1
        assert history[0].durations == stopped.durations

    @pytest.mark.asyncio
    async def test_double_stop_rejected(self, service):
        tracker = await service.create_tracker("Writing")
        line = await service.start_tracking(tracker.id, "draft")
        await service.stop_tracking(line.id)

        with pytest.raises(ValidationError) as exc_info:
            await service.stop_tracking(line.id)

        assert exc_info.value.reason == "has no active duration"
        assert str(exc_info.value) == f"Line {line.id} has no active duration"

    @pytest.mark.asyncio
    async def test_double_resume_rejected(self, service):
        tracker = await service.create_tracker("Writing")
        line = await service.start_tracking(tracker.id, "draft")

        with pytest.raises(ValidationError) as exc_info:
            await service.resume_tracking(line.id)

        assert exc_info.value.reason == "already has an active duration"
        lines = await service.get_tracker_lines()
        assert len(lines[0].durations) == 1

    @pytest.mark.asyncio
    async def test_resume_writing_draft(self, service, channel, clock):
        """Pause a draft, come back to it, and account for both sessions."""
        tracker = await service.create_tracker("Writing")
        line = await service.start_tracking(tracker.id, "draft")
        clock.advance(minutes=10)
        await service.stop_tracking(line.id)
        clock.advance(minutes=5)
        channel.drain_nowait()

        resumed = await service.resume_tracking(line.id)

        assert resumed.state == LineState.RUNNING
        assert len(resumed.durations) == 2
        newest, oldest = resumed.durations
        assert newest.ended_at is None
        assert oldest.ended_at is not None
        assert newest.started_at > oldest.started_at
        assert [u.kind for u in published(channel)] == [UpdateKind.UPDATED]

        clock.advance(minutes=3)
        final = await service.stop_tracking(line.id)
        assert final.elapsed_seconds == 13 * 60
        assert all(d.ended_at is not None for d in final.durations)

    @pytest.mark.asyncio
    async def test_running_line_counts_open_segment(self, service, clock):
        tracker = await service.create_tracker("Writing")
        line = await service.start_tracking(tracker.id, "draft")
        clock.advance(seconds=90)

        lines = await service.get_tracker_lines()
        assert lines[0].id == line.id
        assert lines[0].elapsed_seconds == 90

    @pytest.mark.asyncio
    async def test_stop_and_resume_unknown_line(self, service):
        with pytest.raises(NotFoundError) as exc_info:
            await service.stop_tracking(5)
        assert str(exc_info.value) == "Line with id 5 not found"

        with pytest.raises(NotFoundError):
            await service.resume_tracking(5)

    @pytest.mark.asyncio
    async def test_update_tracked_changes_description_only(self, service, clock):
        tracker = await service.create_tracker("Writing")
        line = await service.start_tracking(tracker.id, "draft")
        clock.advance(minutes=1)

        updated = await service.update_tracked(line.id, "second draft")

        assert updated.desc == "second draft"
        assert updated.durations == line.durations
        assert updated.state == LineState.RUNNING

    @pytest.mark.asyncio
    async def test_update_tracked_not_found(self, service):
        with pytest.raises(NotFoundError):
            await service.update_tracked(3, "anything")

    @pytest.mark.asyncio
    async def test_remove_tracked(self, service, channel, memory_repos):
        tracker = await service.create_tracker("Writing")
        line = await service.start_tracking(tracker.id, "draft")
        channel.drain_nowait()

        await service.remove_tracked(line.id)

        assert await service.get_tracker_lines() == []
        stored = await memory_repos.line.get_by_id(line.id, include_deleted=True)
        assert stored.is_deleted is True
        # Segments go with the line
        assert await memory_repos.duration.list_for_line(line.id) == []

        updates = published(channel)
        assert len(updates) == 1
        assert updates[0].kind == UpdateKind.UPDATED
        assert updates[0].payload.is_deleted is True

        with pytest.raises(NotFoundError):
            await service.stop_tracking(line.id)
        with pytest.raises(NotFoundError):
            await service.remove_tracked(line.id)

    @pytest.mark.asyncio
    async def test_get_tracker_lines_filtered_by_tracker(self, service, clock):
        writing = await service.create_tracker("Writing")
        reading = await service.create_tracker("Reading")
        draft = await service.start_tracking(writing.id, "draft")
        clock.advance(seconds=1)
        await service.start_tracking(reading.id, "novel")
        clock.advance(seconds=1)
        edit = await service.start_tracking(writing.id, "edit")

        lines = await service.get_tracker_lines(writing.id)
        assert [l.id for l in lines] == [edit.id, draft.id]

        with pytest.raises(NotFoundError):
            await service.get_tracker_lines(99)


@pytest.mark.unit
class TestStopAll:
    """Shutdown-style stop of every running line."""

    @pytest.mark.asyncio
    async def test_stops_only_running_lines(self, service, clock):
        tracker = await service.create_tracker("Writing")
        paused = await service.start_tracking(tracker.id, "draft")
        await service.stop_tracking(paused.id)
        running = [await service.start_tracking(tracker.id, f"line {i}") for i in range(3)]
        clock.advance(minutes=2)

        stopped = await service.stop_all_active_tracking()

        assert sorted(v.id for v in stopped) == sorted(v.id for v in running)
        assert all(v.state == LineState.PAUSED for v in stopped)
        for line in await service.get_tracker_lines():
            assert line.active_duration is None

    @pytest.mark.asyncio
    async def test_nothing_running(self, service):
        tracker = await service.create_tracker("Writing")
        line = await service.start_tracking(tracker.id, "draft")
        await service.stop_tracking(line.id)

        assert await service.stop_all_active_tracking() == []


@pytest.mark.unit
class TestPublishing:
    """Notification is best-effort and never fails an operation."""

    @pytest.mark.asyncio
    async def test_closed_channel_does_not_fail_operations(self, service, channel):
        channel.close()

        tracker = await service.create_tracker("Writing")
        line = await service.start_tracking(tracker.id, "draft")

        assert line.state == LineState.RUNNING
        assert channel.dropped == 2
        assert channel.pending() == 0

    @pytest.mark.asyncio
    async def test_service_without_channel(self, memory_repos, clock):
        service = TrackingService(memory_repos, clock=clock)

        tracker = await service.create_tracker("Writing")
        line = await service.start_tracking(tracker.id, "draft")
        stopped = await service.stop_tracking(line.id)

        assert stopped.state == LineState.PAUSED

    @pytest.mark.asyncio
    async def test_line_locks_are_released(self, service):
        tracker = await service.create_tracker("Writing")
        line = await service.start_tracking(tracker.id, "draft")
        await service.stop_tracking(line.id)
        with pytest.raises(ValidationError):
            await service.stop_tracking(line.id)

        assert len(service._line_locks) == 0
        assert len(service._entry_locks) == 0


@pytest.mark.unit
class TestMemoryStore:
    @pytest.mark.asyncio
    async def test_clear_restarts_ids(self, service, memory_store):
        await service.create_tracker("Writing")
        await service.create_tracker("Reading")

        memory_store.clear()

        assert await service.get_trackers() == []
        tracker = await service.create_tracker("Coding")
        assert tracker.id == 1
