# v1.1
import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

NOTE_NAMES = ("C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B")
REFERENCE_PITCH = 440.0  # A4
REFERENCE_MIDI = 69      # A4 の MIDI ノート番号

IN_TUNE_CENTS = 5
CLOSE_CENTS = 15

_NOTE_PATTERN = re.compile(r"^([A-Ga-g])(#?)(-?\d+)$")


class TuningStatus(Enum):
    IN_TUNE = "in_tune"
    CLOSE = "close"
    OFF = "off"


@dataclass(frozen=True)
class NoteReading:
    """最寄りの平均律の音と、そこからのずれ（セント）。"""
    pitch_class: str
    octave: int
    cents: int  # [-50, 50)
    midi: int

    @property
    def name(self) -> str:
        return f"{self.pitch_class}{self.octave}"

    def __str__(self):
        return f"{self.name} {self.cents:+d}ct"


def round_half_up(value: float) -> int:
    """x.5 は常に +方向へ丸める（負数でも同じ向き）。"""
    return int(math.floor(value + 0.5))


def split_cents(total_cents: int) -> Tuple[int, int]:
    """
    基準音からの総セント数を (半音数, 残差セント) に分ける。
    残差は [-50, 50)。ちょうど +50 の場合は上の半音の -50 として扱う。
    """
    semitones = (total_cents + 50) // 100
    return semitones, total_cents - semitones * 100


def frequency_to_note(frequency_hz: float, reference_pitch: float = REFERENCE_PITCH) -> NoteReading:
    if not math.isfinite(frequency_hz) or frequency_hz <= 0:
        raise ValueError(f"frequency must be a positive finite number: {frequency_hz}")

    total_cents = round_half_up(1200 * math.log2(frequency_hz / reference_pitch))
    semitones, cents = split_cents(total_cents)

    midi = REFERENCE_MIDI + semitones
    return NoteReading(
        pitch_class=NOTE_NAMES[midi % 12],
        octave=midi // 12 - 1,
        cents=cents,
        midi=midi,
    )


def note_frequency(pitch_class: str, octave: int, reference_pitch: float = REFERENCE_PITCH) -> float:
    """音名とオクターブから平均律の周波数を返す (A4 -> 440.0)。"""
    try:
        index = NOTE_NAMES.index(pitch_class)
    except ValueError:
        raise ValueError(f"unknown pitch class: {pitch_class!r}") from None
    midi = (octave + 1) * 12 + index
    return reference_pitch * 2 ** ((midi - REFERENCE_MIDI) / 12)


def parse_note_name(name: str) -> Tuple[str, int]:
    """"E2" -> ("E", 2)"""
    match = _NOTE_PATTERN.match(name.strip())
    if not match:
        raise ValueError(f"invalid note name: {name!r}")
    letter, sharp, octave = match.groups()
    return letter.upper() + sharp, int(octave)


def tuning_status(cents: float) -> TuningStatus:
    deviation = abs(cents)
    if deviation <= IN_TUNE_CENTS:
        return TuningStatus.IN_TUNE
    if deviation <= CLOSE_CENTS:
        return TuningStatus.CLOSE
    return TuningStatus.OFF
