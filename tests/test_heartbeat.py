import io
import time

from binbake.heartbeat import Heartbeat
from binbake.policy import Policy


def test_heartbeat_prints_markers_until_stopped() -> None:
    """Markers are printed on the interval and stop once joined."""
    stream = io.StringIO()
    heartbeat = Heartbeat(interval=0.01, stream=stream)

    with heartbeat:
        assert heartbeat.running
        deadline = time.monotonic() + 5
        while heartbeat.beats < 2 and time.monotonic() < deadline:
            time.sleep(0.01)

    assert not heartbeat.running
    beats = heartbeat.beats
    assert beats >= 2
    assert stream.getvalue() == "." * beats + "\n"
    time.sleep(0.05)
    assert heartbeat.beats == beats


def test_stop_without_beats_writes_nothing() -> None:
    stream = io.StringIO()
    heartbeat = Heartbeat(interval=60, stream=stream).start()

    heartbeat.stop()

    assert stream.getvalue() == ""
    heartbeat.stop()


def test_heartbeat_only_runs_quietly_on_ci() -> None:
    assert Policy().heartbeat_enabled({"CI": "true"})
    assert Policy().heartbeat_enabled({"TRAVIS": "1"})
    assert not Policy().heartbeat_enabled({})
    assert not Policy(verbose=True).heartbeat_enabled({"CI": "true"})
