"""
Tests for the tuning session state machine.
"""
import threading
import pytest

from pitchengine.frames import split_frames
from pitchengine.note_mapper import TuningStatus
from pitchengine.tuning_session import SessionState, TuningSession


@pytest.fixture
def session(sample_rate):
    return TuningSession({"sample_rate": sample_rate})


@pytest.fixture
def active_session(session, sample_rate):
    session.start()
    session.acquisition_ready(sample_rate)
    return session


class TestLifecycle:
    """State transitions."""

    def test_starts_idle(self, session):
        assert session.state is SessionState.IDLE
        assert session.current_reading() is None

    def test_start_then_ready(self, session, sample_rate):
        assert session.start() is True
        assert session.state is SessionState.STARTING
        assert session.acquisition_ready(sample_rate) is True
        assert session.state is SessionState.ACTIVE
        assert session.is_active

    def test_start_only_from_idle(self, active_session):
        assert active_session.start() is False
        assert active_session.state is SessionState.ACTIVE

    def test_ready_requires_starting(self, session, sample_rate):
        assert session.acquisition_ready(sample_rate) is False
        assert session.state is SessionState.IDLE

    def test_acquisition_failure_returns_to_idle(self, session):
        session.start()
        session.acquisition_failed(RuntimeError("no device"))
        assert session.state is SessionState.IDLE

    @pytest.mark.parametrize("setup", ["idle", "starting", "active"])
    def test_stop_from_any_state(self, session, sample_rate, setup):
        if setup != "idle":
            session.start()
        if setup == "active":
            session.acquisition_ready(sample_rate)
        session.stop()
        assert session.state is SessionState.IDLE
        assert session.current_reading() is None

    def test_ready_adopts_sample_rate(self, session):
        session.start()
        session.acquisition_ready(48000)
        assert session.sample_rate == 48000

    def test_invalid_config(self):
        with pytest.raises(ValueError):
            TuningSession({"smoothing": 0})
        with pytest.raises(ValueError):
            TuningSession({"min_freq": 2000.0})


class TestFrameCycle:
    """Estimator -> mapper -> stabilizer -> publish."""

    def test_frames_ignored_unless_active(self, session, make_sine):
        assert session.on_frame(make_sine(440.0)) is None
        session.start()
        assert session.on_frame(make_sine(440.0)) is None
        assert session.current_reading() is None

    def test_tonal_frame_publishes_reading(self, active_session, make_sine):
        reading = active_session.on_frame(make_sine(440.0))
        assert reading is not None
        assert (reading.pitch_class, reading.octave) == ("A", 4)
        assert reading.cents == 0
        assert reading.frequency_hz == pytest.approx(440.0, rel=0.01)
        assert reading.status is TuningStatus.IN_TUNE
        assert active_session.current_reading() == reading

    def test_smoothed_cents_averages_history(self, active_session, make_sine):
        raw = []
        for freq in (440.0, 443.0, 446.0):
            reading = active_session.on_frame(make_sine(freq))
            raw.append(reading.note.cents)
        assert reading.smoothed_cents == pytest.approx(sum(raw) / len(raw))
        assert reading.note.cents == raw[-1]

    def test_silence_clears_reading_and_history(self, active_session, make_sine, silence_frame):
        for freq in (446.0, 446.0, 446.0):
            active_session.on_frame(make_sine(freq))
        assert active_session.on_frame(silence_frame) is None
        assert active_session.current_reading() is None

        reading = active_session.on_frame(make_sine(435.0))
        assert reading.smoothed_cents == reading.note.cents
        assert reading.note.cents < 0

    def test_out_of_range_frame_resets_history(self, active_session, make_sine):
        active_session.on_frame(make_sine(446.0))
        assert active_session.on_frame(make_sine(2500.0)) is None
        reading = active_session.on_frame(make_sine(437.0))
        assert reading.smoothed_cents == reading.note.cents

    def test_restart_does_not_leak_history(self, active_session, make_sine, sample_rate):
        for _ in range(4):
            active_session.on_frame(make_sine(446.0))
        active_session.stop()
        active_session.start()
        active_session.acquisition_ready(sample_rate)

        reading = active_session.on_frame(make_sine(434.0))
        assert reading.smoothed_cents == reading.note.cents

    def test_frames_after_stop_are_ignored(self, active_session, make_sine):
        active_session.on_frame(make_sine(440.0))
        active_session.stop()
        assert active_session.on_frame(make_sine(440.0)) is None
        assert active_session.current_reading() is None

    def test_split_frames_drive_session(self, active_session, make_sine, sample_rate, frame_size):
        signal = make_sine(196.0, length=frame_size * 4)
        readings = [active_session.on_frame(f.samples, f.sample_rate)
                    for f in split_frames(signal, sample_rate, frame_size)]
        assert len(readings) == 4
        assert all(r is not None and r.note.name == "G3" for r in readings)


class TestListener:
    """Published-state notifications."""

    def test_listener_receives_each_publish(self, sample_rate, make_sine, silence_frame):
        received = []
        session = TuningSession({"sample_rate": sample_rate}, listener=received.append)
        session.start()
        session.acquisition_ready(sample_rate)

        session.on_frame(make_sine(440.0))
        session.on_frame(silence_frame)
        session.stop()

        assert len(received) == 3
        assert received[0].note.name == "A4"
        assert received[1] is None
        assert received[2] is None

    def test_listener_may_stop_session(self, sample_rate, make_sine):
        holder = {}

        def listener(reading):
            if reading is not None:
                holder["session"].stop()

        session = TuningSession({"sample_rate": sample_rate}, listener=listener)
        holder["session"] = session
        session.start()
        session.acquisition_ready(sample_rate)
        session.on_frame(make_sine(440.0))
        assert session.state is SessionState.IDLE

    def test_no_frame_processed_after_stop_returns(self, sample_rate, make_sine):
        calls = []
        session = TuningSession({"sample_rate": sample_rate}, listener=calls.append)
        session.start()
        session.acquisition_ready(sample_rate)

        frame = make_sine(330.0)
        done = threading.Event()
        processed = threading.Event()

        def feed():
            while not done.is_set():
                session.on_frame(frame)
                processed.set()

        worker = threading.Thread(target=feed)
        worker.start()
        try:
            assert processed.wait(timeout=5.0)
            session.stop()
            count_after_stop = len(calls)
            # 停止後もワーカーは on_frame を呼び続ける
            processed.clear()
            assert processed.wait(timeout=5.0)
            processed.clear()
            assert processed.wait(timeout=5.0)
        finally:
            done.set()
            worker.join(timeout=5.0)

        assert len(calls) == count_after_stop
        assert calls[-1] is None
        assert session.current_reading() is None
