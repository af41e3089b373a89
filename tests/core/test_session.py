"""Tests for the recording session state machine."""

from pathlib import Path

import pytest

from lyricflow.config import VisualSettings
from lyricflow.core.scroll import ScrollInterpolator
from lyricflow.core.session import RecordingPhase, RecordingSessionController
from lyricflow.core.timeline import LyricTimeline
from lyricflow.exceptions import AudioError, CaptureError, RecordingStartError
from lyricflow.io.audio import FrameClock, SilenceSource, VirtualTransport


class BrokenTransport(VirtualTransport):
    def prepare(self):
        raise AudioError("output device busy")


@pytest.fixture
def silences():
    return []


@pytest.fixture
def controller_parts(make_capture, silences):
    def _factory():
        source = SilenceSource()
        silences.append(source)
        return source

    transport = VirtualTransport(Path("song.wav"), 10.0)
    capture = make_capture()
    interpolator = ScrollInterpolator(4.0)
    clock = FrameClock(100.0)
    controller = RecordingSessionController(transport, capture, interpolator, clock, _factory)
    return controller, transport, capture, interpolator, clock


class TestStart:
    def test_can_start_needs_audio_and_lyrics(self, make_capture, timeline):
        interp = ScrollInterpolator()
        no_audio = RecordingSessionController(VirtualTransport(), make_capture(), interp, FrameClock())
        assert not no_audio.can_start(timeline)

        with_audio = RecordingSessionController(
            VirtualTransport(Path("a.wav"), 5.0), make_capture(), interp, FrameClock()
        )
        assert with_audio.can_start(timeline)
        assert not with_audio.can_start(LyricTimeline())

    def test_not_permitted_is_rejected(self, controller_parts):
        controller, _, capture, _, _ = controller_parts
        assert controller.start(LyricTimeline(), 320, 180) is False
        assert controller.phase is RecordingPhase.IDLE
        assert not capture.active

    def test_start_enters_intro(self, controller_parts, timeline, silences):
        controller, transport, capture, interpolator, _ = controller_parts
        transport.seek(4.0)
        transport.play()

        assert controller.start(timeline, 320, 180) is True

        assert controller.phase is RecordingPhase.INTRO
        assert transport.current_time == 0.0
        assert not transport.is_playing
        assert interpolator.smooth_index == 0.0
        assert capture.size == (320, 180)
        assert capture.route.track == Path("song.wav")
        assert capture.route.silence is silences[0]
        assert silences[0].running

    def test_second_start_is_noop(self, controller_parts, timeline):
        controller, _, _, _, _ = controller_parts
        controller.start(timeline, 320, 180)
        assert controller.start(timeline, 320, 180) is False
        assert controller.phase is RecordingPhase.INTRO

    def test_capture_failure_stays_idle(self, make_capture, timeline, silences):
        def _factory():
            silences.append(SilenceSource())
            return silences[-1]

        controller = RecordingSessionController(
            VirtualTransport(Path("song.wav"), 10.0),
            make_capture(fail_on_start=True),
            ScrollInterpolator(),
            FrameClock(),
            _factory,
        )
        with pytest.raises(RecordingStartError, match="Could not start recording"):
            controller.start(timeline, 320, 180)

        assert controller.phase is RecordingPhase.IDLE
        assert silences[0].released
        assert controller.silence is None

    def test_audio_failure_stays_idle(self, make_capture, timeline):
        capture = make_capture()
        controller = RecordingSessionController(
            BrokenTransport(Path("song.wav"), 10.0),
            capture,
            ScrollInterpolator(),
            FrameClock(),
        )
        with pytest.raises(RecordingStartError) as excinfo:
            controller.start(timeline, 320, 180)

        assert isinstance(excinfo.value.__cause__, AudioError)
        assert controller.phase is RecordingPhase.IDLE
        assert not capture.active


class TestSample:
    def test_idle_follows_transport(self, controller_parts):
        controller, transport, _, _, _ = controller_parts
        transport.seek(0.2)
        sample = controller.sample(VisualSettings())
        assert sample.time == pytest.approx(0.2)
        assert not sample.is_intro
        assert sample.lyrics_opacity == 1.0
        assert sample.audio_time is None

    def test_idle_at_start_shows_lyrics(self, controller_parts):
        controller, _, _, _, _ = controller_parts
        sample = controller.sample(VisualSettings())
        assert sample.time == 0.0
        assert sample.lyrics_opacity == 1.0

    def test_intro_uses_given_clock_reading(self, controller_parts, timeline):
        controller, _, _, _, clock = controller_parts
        settings = VisualSettings(intro_duration=1.0)
        controller.start(timeline, 320, 180)

        sample = controller.sample(settings, clock() + 0.75)

        assert sample.is_intro
        assert sample.title_opacity == pytest.approx(0.5)

    def test_intro_title_fades_in_last_half_second(self, controller_parts, timeline):
        controller, _, _, _, clock = controller_parts
        settings = VisualSettings(intro_duration=1.0)
        controller.start(timeline, 320, 180)

        first = controller.sample(settings)
        assert first.is_intro
        assert first.title_opacity == 1.0
        assert first.lyrics_opacity == 0.0
        assert first.time == 0.0
        assert first.audio_time is None

        clock.advance(0.75)
        assert controller.sample(settings).title_opacity == pytest.approx(0.5)

    def test_intro_ends_into_recording(self, controller_parts, timeline):
        controller, transport, _, _, clock = controller_parts
        settings = VisualSettings(intro_duration=1.0)
        controller.start(timeline, 320, 180)

        clock.advance(1.0)
        sample = controller.sample(settings)

        assert controller.phase is RecordingPhase.RECORDING
        assert sample.phase is RecordingPhase.RECORDING
        assert not sample.is_intro
        assert sample.title_opacity == 0.0
        assert sample.audio_time == 0.0
        assert transport.is_playing

    def test_zero_intro_never_shows_title(self, controller_parts, timeline):
        controller, transport, _, _, _ = controller_parts
        controller.start(timeline, 320, 180)

        sample = controller.sample(VisualSettings(intro_duration=0.0))

        assert not sample.is_intro
        assert controller.phase is RecordingPhase.RECORDING
        assert transport.is_playing

    def test_lyrics_fade_in_after_intro(self, controller_parts, timeline):
        controller, transport, _, _, _ = controller_parts
        settings = VisualSettings(intro_duration=0.0)
        controller.start(timeline, 320, 180)
        controller.sample(settings)

        transport.advance(0.25)
        sample = controller.sample(settings)
        assert sample.lyrics_opacity == pytest.approx(0.5)
        assert sample.audio_time == pytest.approx(0.25)

        transport.advance(1.0)
        assert controller.sample(settings).lyrics_opacity == 1.0


class TestStop:
    def test_stop_returns_artifact(self, controller_parts, timeline, silences):
        controller, transport, capture, _, _ = controller_parts
        controller.start(timeline, 320, 180)
        controller.sample(VisualSettings(intro_duration=0.0))

        artifact = controller.stop()

        assert artifact == Path("capture.webm")
        assert controller.last_artifact == artifact
        assert controller.phase is RecordingPhase.IDLE
        assert not transport.is_playing
        assert silences[0].released
        assert not silences[0].running

    def test_stop_during_intro(self, controller_parts, timeline, silences):
        controller, _, capture, _, _ = controller_parts
        controller.start(timeline, 320, 180)
        controller.stop()
        assert controller.phase is RecordingPhase.IDLE
        assert capture.stops == 1
        assert silences[0].released

    def test_stop_when_idle(self, controller_parts):
        controller, _, capture, _, _ = controller_parts
        assert controller.stop() is None
        assert capture.stops == 0

    def test_failed_finalize_still_reaches_idle(self, make_capture, timeline):
        silence = SilenceSource()
        controller = RecordingSessionController(
            VirtualTransport(Path("song.wav"), 10.0),
            make_capture(fail_on_stop=True),
            ScrollInterpolator(),
            FrameClock(),
            lambda: silence,
        )
        controller.start(timeline, 320, 180)

        with pytest.raises(CaptureError):
            controller.stop()

        assert controller.phase is RecordingPhase.IDLE
        assert silence.released

    def test_abort(self, controller_parts, timeline, silences):
        controller, _, capture, _, _ = controller_parts
        controller.start(timeline, 320, 180)
        controller.abort()
        assert capture.aborts == 1
        assert controller.phase is RecordingPhase.IDLE
        assert silences[0].released

    def test_audio_end_finalizes_recording(self, controller_parts, timeline):
        controller, _, capture, _, _ = controller_parts
        controller.start(timeline, 320, 180)
        controller.sample(VisualSettings(intro_duration=0.0))

        assert controller.on_audio_ended() == Path("capture.webm")
        assert capture.stops == 1
        assert controller.phase is RecordingPhase.IDLE

    def test_audio_end_ignored_outside_recording(self, controller_parts, timeline):
        controller, _, capture, _, _ = controller_parts
        assert controller.on_audio_ended() is None
        controller.start(timeline, 320, 180)
        assert controller.on_audio_ended() is None
        assert controller.phase is RecordingPhase.INTRO
        assert capture.stops == 0
