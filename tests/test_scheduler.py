# tests/test_scheduler.py
from newsfeed import scheduler as sched
from newsfeed.guard import RefreshGuard


def test_guard_never_blocks():
    guard = RefreshGuard()
    with guard.running() as first:
        assert first and guard.busy
        with guard.running() as second:
            assert second is False
        assert guard.busy
    assert not guard.busy


def test_manual_refresh_refused_while_busy(mocker):
    run = mocker.patch("newsfeed.scheduler.run_refresh")
    guard = RefreshGuard()
    guard.try_acquire()
    assert sched.trigger_manual_refresh(guard) is False
    run.assert_not_called()
    guard.release()


def test_manual_refresh_runs_when_idle(mocker):
    run = mocker.patch("newsfeed.scheduler.run_refresh", return_value={"stored": 3})
    guard = RefreshGuard()
    assert sched.trigger_manual_refresh(guard) is True
    run.assert_called_once_with(guard)


def test_jobs_registered():
    try:
        sched.add_jobs()
        assert {j.id for j in sched.scheduler.get_jobs()} == {"refresh_articles", "cleanup_articles"}
    finally:
        sched.scheduler.remove_all_jobs()
