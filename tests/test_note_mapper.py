"""
Tests for frequency -> note mapping.
"""
import pytest
import numpy as np

from pitchengine.note_mapper import (
    NOTE_NAMES,
    NoteReading,
    TuningStatus,
    frequency_to_note,
    note_frequency,
    parse_note_name,
    round_half_up,
    split_cents,
    tuning_status,
)


class TestFrequencyToNote:
    """Nearest-semitone mapping."""

    def test_concert_a(self):
        reading = frequency_to_note(440.0)
        assert reading == NoteReading(pitch_class="A", octave=4, cents=0, midi=69)
        assert reading.name == "A4"

    @pytest.mark.parametrize("freq,name", [
        (82.41, "E2"), (110.0, "A2"), (146.83, "D3"),
        (196.0, "G3"), (246.94, "B3"), (329.63, "E4"),
        (261.63, "C4"), (16.35, "C0"),
    ])
    def test_known_notes(self, freq, name):
        reading = frequency_to_note(freq)
        assert reading.name == name
        assert abs(reading.cents) <= 1

    def test_octave_changes_at_c(self):
        assert frequency_to_note(246.94).octave == 3  # B3
        assert frequency_to_note(261.63).octave == 4  # C4

    def test_sharp_and_flat_offsets(self):
        assert frequency_to_note(440.0 * 2 ** (10 / 1200)).cents == 10
        assert frequency_to_note(440.0 * 2 ** (-20 / 1200)).cents == -20

    def test_quarter_tone_boundary_goes_up(self):
        reading = frequency_to_note(440.0 * 2 ** (1 / 24))
        assert reading.pitch_class == "A#"
        assert reading.octave == 4
        assert reading.cents == -50

    def test_just_below_boundary_stays(self):
        reading = frequency_to_note(440.0 * 2 ** (49 / 1200))
        assert reading.pitch_class == "A"
        assert reading.cents == 49

    def test_cents_always_in_range(self):
        for freq in np.geomspace(60.0, 1500.0, 500):
            reading = frequency_to_note(float(freq))
            assert -50 <= reading.cents < 50
            assert reading.pitch_class in NOTE_NAMES

    def test_monotonic_within_semitone(self):
        # A4 center -> A#4 center
        freqs = 440.0 * 2 ** (np.linspace(0.0, 1.0, 400) / 12)
        readings = [frequency_to_note(float(f)) for f in freqs]
        a_cents = [r.cents for r in readings if r.pitch_class == "A"]
        sharp_cents = [r.cents for r in readings if r.pitch_class == "A#"]
        assert a_cents == sorted(a_cents)
        assert sharp_cents == sorted(sharp_cents)
        assert a_cents[0] == 0 and sharp_cents[-1] == 0

    def test_pitch_class_and_octave_identify_semitone(self):
        reading = frequency_to_note(98.0)  # G2
        assert (reading.octave + 1) * 12 + NOTE_NAMES.index(reading.pitch_class) == reading.midi

    def test_custom_reference(self):
        reading = frequency_to_note(432.0, reference_pitch=432.0)
        assert reading.name == "A4"
        assert reading.cents == 0

    @pytest.mark.parametrize("bad", [0.0, -10.0, float("nan"), float("inf")])
    def test_invalid_frequency(self, bad):
        with pytest.raises(ValueError):
            frequency_to_note(bad)


class TestRounding:
    """Boundary rounding rule."""

    @pytest.mark.parametrize("value,expected", [
        (0.5, 1), (1.5, 2), (-0.5, 0), (-1.5, -1), (49.4, 49), (-49.6, -50),
    ])
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected

    @pytest.mark.parametrize("total,expected", [
        (0, (0, 0)), (49, (0, 49)), (50, (1, -50)), (-50, (0, -50)),
        (-51, (-1, 49)), (1200, (12, 0)), (-1250, (-12, -50)),
    ])
    def test_split_cents(self, total, expected):
        assert split_cents(total) == expected


class TestHelpers:
    """Inverse mapping and status helpers."""

    def test_note_frequency(self):
        assert note_frequency("A", 4) == pytest.approx(440.0)
        assert note_frequency("E", 2) == pytest.approx(82.4069, abs=1e-3)
        assert note_frequency("C", 4) == pytest.approx(261.6256, abs=1e-3)

    def test_note_frequency_round_trips(self):
        for pitch_class in NOTE_NAMES:
            reading = frequency_to_note(note_frequency(pitch_class, 3))
            assert (reading.pitch_class, reading.octave, reading.cents) == (pitch_class, 3, 0)

    def test_note_frequency_unknown_class(self):
        with pytest.raises(ValueError):
            note_frequency("H", 4)

    @pytest.mark.parametrize("name,expected", [
        ("E2", ("E", 2)), ("c#4", ("C#", 4)), (" A-1 ", ("A", -1)),
    ])
    def test_parse_note_name(self, name, expected):
        assert parse_note_name(name) == expected

    @pytest.mark.parametrize("name", ["", "X4", "E", "Eb2"])
    def test_parse_note_name_invalid(self, name):
        with pytest.raises(ValueError):
            parse_note_name(name)

    @pytest.mark.parametrize("cents,status", [
        (0, TuningStatus.IN_TUNE), (-5, TuningStatus.IN_TUNE), (5, TuningStatus.IN_TUNE),
        (6, TuningStatus.CLOSE), (-15, TuningStatus.CLOSE),
        (16, TuningStatus.OFF), (-49, TuningStatus.OFF),
    ])
    def test_tuning_status(self, cents, status):
        assert tuning_status(cents) is status
