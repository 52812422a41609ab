"""Loop controller: loop detection, statistics, transport and timer lifecycle."""

from __future__ import annotations

import pytest

from backend import InvalidLoopWindow, TrackState
from conftest import VIDEO_A, run_for


def _periodic(scheduler):
    return sorted(h.name.split(':')[0] for h in scheduler.timers
                  if h.name.startswith(('poll', 'stats')))


# ── start ────────────────────────────────────────────────────────────


def test_start_seeks_to_loop_start_and_plays(ready_track, factory, scheduler):
    player = factory.last
    assert ready_track.start() is True

    assert ready_track.state == TrackState.PLAYING
    assert player.calls[-2:] == [('seek_to', 10, True), ('play_video',)]
    assert _periodic(scheduler) == ['poll', 'stats']


def test_start_while_playing_is_a_noop(ready_track, factory, scheduler):
    ready_track.start()
    calls = list(factory.last.calls)

    assert ready_track.start() is False
    assert factory.last.calls == calls
    assert _periodic(scheduler) == ['poll', 'stats']


def test_start_rejects_empty_window_without_side_effects(ready_track, factory, scheduler):
    ready_track.set_loop_window(0, 20, 0, 10)
    calls = list(factory.last.calls)

    with pytest.raises(InvalidLoopWindow):
        ready_track.start()

    assert ready_track.state == TrackState.READY
    assert factory.last.calls == calls
    assert _periodic(scheduler) == []
    assert (ready_track.loop_start, ready_track.loop_end) == (20, 10)


def test_start_rejects_zero_length_window(ready_track):
    ready_track.set_loop_window(0, 12, 0, 12)
    with pytest.raises(InvalidLoopWindow):
        ready_track.start()


def test_start_before_ready_is_ignored(session, factory, scheduler):
    track = session.add_track()
    track.set_loop_window(0, 0, 0, 5)
    track.bind(VIDEO_A)

    assert track.start() is False
    assert track.state == TrackState.IDLE
    assert factory.last.calls == []
    assert scheduler.timers == []


def test_start_on_unbound_track_is_ignored(session):
    track = session.add_track()
    assert track.start() is False
    assert track.state == TrackState.IDLE


def test_start_from_paused_resumes(ready_track, factory):
    ready_track.start()
    ready_track.pause()
    assert ready_track.start() is True
    assert ready_track.state == TrackState.PLAYING


# ── check_loop ───────────────────────────────────────────────────────


def test_samples_10_12_14_16_give_exactly_one_loop(ready_track, factory):
    player = factory.last
    loops = []
    ready_track.on('loop', lambda track, count: loops.append(count))
    ready_track.start()
    player.samples = [10, 12, 14, 16]

    for _ in range(4):
        ready_track.controller.check_loop()

    assert loops == [1]
    assert ready_track.loop_count == 1
    assert player.seeks() == [10, 10]  # start, then the one loop


@pytest.mark.parametrize("start,end", [(0, 1), (10, 15), (2.5, 7.25), (59.9, 61.3)])
def test_one_loop_per_crossing_not_per_sample(session, factory, start, end):
    track = session.add_track()
    track.set_loop_start(start)
    track.set_loop_end(end)
    track.bind(VIDEO_A)
    factory.last.fire_ready()
    track.start()

    samples = [start]
    while samples[-1] < end:
        samples.append(samples[-1] + 0.1)
    factory.last.samples = samples

    # Extra polls read the post-seek position, which is back at loop start.
    for _ in range(len(samples) + 3):
        track.controller.check_loop()

    assert track.loop_count == 1
    assert factory.last.seeks() == [start, start]


def test_each_crossing_counts_once(ready_track, factory):
    ready_track.start()
    factory.last.samples = [10, 14.9, 15.0, 11, 13, 15.4, 10.2]

    for _ in range(7):
        ready_track.controller.check_loop()

    assert ready_track.loop_count == 2


def test_stale_positions_after_a_seek_count_once(ready_track, factory):
    ready_track.start()
    factory.last.samples = [10, 12, 14, 16, 16.1, 16.2]

    for _ in range(6):
        ready_track.controller.check_loop()

    assert ready_track.loop_count == 1
    assert factory.last.seeks() == [10, 10]


def test_late_seek_is_not_repeated(ready_track, factory):
    player = factory.last
    ready_track.start()
    player.seek_lag = 2
    player.position = 16

    for _ in range(3):
        ready_track.controller.check_loop()
    assert ready_track.loop_count == 1
    assert player.seeks() == [10, 10]

    ready_track.controller.check_loop()
    assert ready_track.last_position == 10

    player.position = 15.5
    ready_track.controller.check_loop()
    assert ready_track.loop_count == 2
    assert player.seeks() == [10, 10, 10]


def test_restart_rearms_after_a_pending_loop(ready_track, factory):
    ready_track.start()
    factory.last.samples = [16, 16.1]
    ready_track.controller.check_loop()
    ready_track.pause()

    ready_track.start()
    factory.last.samples = [15.2]
    ready_track.controller.check_loop()

    assert ready_track.loop_count == 2


def test_check_loop_refreshes_last_position(ready_track, factory):
    positions = []
    ready_track.on('position_update', lambda track, pos: positions.append(pos))
    ready_track.start()
    factory.last.samples = [11.5, 16.0]

    ready_track.controller.check_loop()
    assert ready_track.last_position == 11.5
    ready_track.controller.check_loop()
    assert ready_track.last_position == 16.0
    assert positions == [11.5, 16.0]


def test_check_loop_does_nothing_when_not_playing(ready_track, factory):
    factory.last.position = 20
    ready_track.controller.check_loop()
    assert ready_track.loop_count == 0


def test_window_edited_while_playing_takes_effect(ready_track, factory):
    ready_track.start()
    ready_track.set_loop_end(12)
    factory.last.samples = [12.05]

    ready_track.controller.check_loop()

    assert ready_track.loop_count == 1


def test_window_made_empty_while_playing_never_loops(ready_track, factory):
    ready_track.start()
    ready_track.set_loop_end(5)
    factory.last.samples = [11, 12, 13]

    for _ in range(3):
        ready_track.controller.check_loop()

    assert ready_track.loop_count == 0


def test_poll_runs_on_the_scheduler(ready_track, factory, scheduler, clock):
    ready_track.start()
    factory.last.position = 15.02

    run_for(scheduler, clock, 0.25)

    assert ready_track.loop_count == 1
    assert ready_track.is_playing


# ── loop signal ──────────────────────────────────────────────────────


def test_loop_signal_clears_after_a_second(ready_track, factory, scheduler, clock):
    cleared = []
    ready_track.on('loop_signal_cleared', lambda track: cleared.append(track.id))
    ready_track.start()
    factory.last.samples = [15.5]
    ready_track.controller.check_loop()
    assert ready_track.loop_signal is True

    run_for(scheduler, clock, 0.5)
    assert ready_track.loop_signal is True

    run_for(scheduler, clock, 0.6)
    assert ready_track.loop_signal is False
    assert cleared == [ready_track.id]


# ── statistics ───────────────────────────────────────────────────────


def test_elapsed_counts_one_per_tick_while_playing(ready_track, factory, scheduler, clock):
    factory.last.position = 11
    ready_track.start()

    run_for(scheduler, clock, 3.5)

    assert ready_track.elapsed_seconds == 3


def test_statistics_tick_ignored_when_not_playing(ready_track):
    ready_track.controller.statistics_tick()
    assert ready_track.elapsed_seconds == 0


def test_elapsed_stops_while_paused(ready_track, factory, scheduler, clock):
    factory.last.position = 11
    ready_track.start()
    run_for(scheduler, clock, 2.5)
    ready_track.pause()
    run_for(scheduler, clock, 5.0)

    assert ready_track.elapsed_seconds == 2


# ── pause / reset ────────────────────────────────────────────────────


def test_pause_keeps_stats_and_cancels_tasks(ready_track, factory, scheduler):
    ready_track.start()
    factory.last.samples = [16]
    ready_track.controller.check_loop()
    ready_track.elapsed_seconds = 7

    assert ready_track.pause() is True

    assert ready_track.state == TrackState.PAUSED
    assert factory.last.commands()[-1] == 'pause_video'
    assert ready_track.loop_count == 1
    assert ready_track.elapsed_seconds == 7
    assert _periodic(scheduler) == []


def test_pause_twice_is_harmless(ready_track, scheduler):
    ready_track.start()
    ready_track.pause()
    ready_track.pause()
    assert ready_track.state == TrackState.PAUSED
    assert _periodic(scheduler) == []


@pytest.mark.parametrize("prior", ["ready", "playing", "paused"])
def test_reset_always_parks_paused_at_loop_start(ready_track, factory, scheduler, clock, prior):
    if prior in ("playing", "paused"):
        ready_track.start()
        factory.last.position = 15.1
        run_for(scheduler, clock, 1.5)
        assert ready_track.loop_count >= 1
    if prior == "paused":
        ready_track.pause()

    ready_track.reset()

    assert ready_track.loop_count == 0
    assert ready_track.elapsed_seconds == 0
    assert ready_track.state == TrackState.PAUSED
    assert ready_track.last_position == 10
    assert factory.last.position == 10
    assert factory.last.calls[-2:] == [('pause_video',), ('seek_to', 10, True)]
    assert _periodic(scheduler) == []
    assert ready_track.loop_signal is False


def test_reset_before_ready_zeroes_stats_only(session, factory):
    track = session.add_track()
    track.loop_count = 4
    track.elapsed_seconds = 90
    track.bind(VIDEO_A)

    assert track.reset() is False
    assert (track.loop_count, track.elapsed_seconds) == (0, 0)
    assert track.state == TrackState.IDLE
    assert factory.last.calls == []


# ── destroy ──────────────────────────────────────────────────────────


def test_destroy_cancels_every_timer(ready_track, factory, scheduler):
    ready_track.start()
    factory.last.samples = [16]
    ready_track.controller.check_loop()
    assert len(scheduler.timers) == 3  # poll, stats, loop signal

    ready_track.destroy()

    assert scheduler.timers == []
    assert factory.last.destroyed
    assert ready_track.backend is None


def test_destroy_is_idempotent(ready_track, factory):
    ready_track.destroy()
    ready_track.destroy()
    ready_track.controller.destroy()
    assert factory.last.commands().count('destroy') == 1


def test_destroy_tolerates_a_backend_that_is_already_gone(ready_track, factory, scheduler):
    ready_track.start()
    factory.last.fail_on_destroy = True

    ready_track.destroy()

    assert ready_track.backend is None
    assert scheduler.timers == []


def test_no_polling_after_destroy(ready_track, factory, scheduler, clock):
    ready_track.start()
    ready_track.destroy()
    factory.last.position = 99

    run_for(scheduler, clock, 2.0)

    assert ready_track.loop_count == 0
    assert ready_track.elapsed_seconds == 0
