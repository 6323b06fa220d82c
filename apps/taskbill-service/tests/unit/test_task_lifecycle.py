from datetime import UTC, datetime

import pytest

from taskbill.db import models
from taskbill.services.task_lifecycle import (
    TaskTransitionError,
    apply_status_change,
    cascade_project_status,
    clamp_hours,
    clamp_progress,
    set_progress,
)

NOW = datetime(2025, 3, 14, 9, 30, tzinfo=UTC)


def _task(status="todo", progress=0, **fields):
    return models.Task(title="t", status=status, progress_percentage=progress, hours_worked=0, **fields)


def test_clamp_helpers():
    assert clamp_progress(-5) == 0
    assert clamp_progress(140) == 100
    assert clamp_progress(42.6) == 43
    assert clamp_hours(-1) == 0.0
    assert clamp_hours("2.5") == 2.5


def test_default_progress_per_status():
    task = _task()
    apply_status_change(task, "in_progress", now=NOW)
    assert task.progress_percentage == 30
    apply_status_change(task, "review", now=NOW)
    assert task.progress_percentage == 80
    apply_status_change(task, "todo", now=NOW)
    assert task.progress_percentage == 0


def test_hold_and_archive_keep_progress():
    task = _task(status="in_progress", progress=55)
    apply_status_change(task, "hold", now=NOW)
    assert task.progress_percentage == 55

    task = _task(status="review", progress=70)
    apply_status_change(task, "archived", now=NOW)
    assert task.progress_percentage == 70


def test_explicit_progress_wins_and_is_clamped():
    task = _task()
    apply_status_change(task, "in_progress", progress_percentage=150, now=NOW)
    assert task.progress_percentage == 100
    assert task.last_progress_update == NOW


def test_same_status_does_not_reset_progress():
    task = _task(status="in_progress", progress=65)
    apply_status_change(task, "in_progress", now=NOW)
    assert task.progress_percentage == 65


def test_completion_sets_dates_and_full_progress():
    task = _task(status="review", progress=80)
    result = apply_status_change(task, "completed", now=NOW)
    assert result.previous_status == "review"
    assert result.new_status == "completed"
    assert task.completed_on == NOW.date()
    assert task.completed_at == NOW
    assert task.progress_percentage == 100


def test_leaving_completed_clears_dates():
    task = _task(status="completed", progress=100, completed_on=NOW.date(), completed_at=NOW)
    apply_status_change(task, "in_progress", now=NOW)
    assert task.completed_on is None
    assert task.completed_at is None
    assert task.progress_percentage == 30


def test_archive_round_trip_tracks_previous_status():
    task = _task(status="review", progress=80)
    apply_status_change(task, "archived", now=NOW)
    assert task.previous_status == "review"
    assert task.archived_at == NOW

    apply_status_change(task, "review", now=NOW)
    assert task.previous_status is None
    assert task.archived_at is None


def test_hours_are_clamped():
    task = _task()
    apply_status_change(task, "in_progress", hours_worked=-3, now=NOW)
    assert task.hours_worked == 0.0


def test_invalid_status_raises():
    with pytest.raises(TaskTransitionError):
        apply_status_change(_task(), "done", now=NOW)


def test_set_progress_stamps_update_time():
    task = _task()
    set_progress(task, 45, now=NOW)
    assert task.progress_percentage == 45
    assert task.last_progress_update == NOW


def _project_with(statuses):
    project = models.Project(name="p", status="active")
    project.tasks = [_task(status=s, progress=10) for s in statuses]
    return project


def test_cascade_completed_completes_open_tasks():
    project = _project_with(["todo", "hold", "completed", "archived"])
    changed = cascade_project_status(project, "active", "completed", now=NOW)
    assert len(changed) == 2
    assert [t.status for t in project.tasks] == ["completed", "completed", "completed", "archived"]
    assert all(t.progress_percentage == 100 for t in changed)


def test_cascade_on_hold_and_back_to_active():
    project = _project_with(["todo", "in_progress", "review", "completed"])
    changed = cascade_project_status(project, "active", "on_hold", now=NOW)
    assert len(changed) == 3
    assert [t.status for t in project.tasks] == ["hold", "hold", "hold", "completed"]

    changed = cascade_project_status(project, "on_hold", "active", now=NOW)
    assert len(changed) == 3
    assert [t.status for t in project.tasks] == ["todo", "todo", "todo", "completed"]


def test_cascade_noop_when_status_unchanged():
    project = _project_with(["todo"])
    assert cascade_project_status(project, "active", "active", now=NOW) == []
