"""Per-student deterministic ordering of questions and options.

Every student sees the quiz in an order derived from a seed computed from
their id and the quiz id, so the same layout can be rebuilt later for
grading and review. This is an anti-copying measure, not access control.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence, TypeVar

from quizdesk.models.quiz import OPTION_LABELS


log = logging.getLogger(__name__)

T = TypeVar("T")

_LCG_MULTIPLIER = 9301
_LCG_INCREMENT = 49297
_LCG_MODULUS = 233280


def _utf16_units(text: str) -> Iterable[int]:
    raw = text.encode("utf-16-le")
    for i in range(0, len(raw), 2):
        yield raw[i] | (raw[i + 1] << 8)


def seed_for(student_id: Any, quiz_id: Any) -> int:
    """Stable 32-bit seed for a (student, quiz) pair.

    Rolling ``h * 31 + unit`` hash over the UTF-16 code units of
    ``"<student>-<quiz>"``, wrapped to signed 32 bits, absolute value.
    """
    h = 0
    for unit in _utf16_units(f"{student_id}-{quiz_id}"):
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


class SeededRandom:
    """Linear congruential generator yielding floats in [0, 1).

    One instance is threaded through a whole shuffle so the question order
    and all option orders come from a single stream.
    """

    def __init__(self, seed: int):
        self._state = int(seed)

    def random(self) -> float:
        self._state = (self._state * _LCG_MULTIPLIER + _LCG_INCREMENT) % _LCG_MODULUS
        return self._state / _LCG_MODULUS


def fisher_yates(items: Sequence[T], rng: SeededRandom) -> list[T]:
    out = list(items)
    for i in range(len(out) - 1, 0, -1):
        j = int(rng.random() * (i + 1))
        out[i], out[j] = out[j], out[i]
    return out


@dataclass
class ShuffledQuestion:
    """Presentation view of one canonical question for one student."""

    id: Any
    question_text: str
    type: str
    paragraph: str | None
    image_url: str | None
    latex: str | None
    explanation: str | None
    # display label -> option text, in display order
    options: dict[str, str] = field(default_factory=dict)
    # display label holding the correct value
    correct_option: str = OPTION_LABELS[0]
    # display label -> canonical label
    label_map: dict[str, str] = field(default_factory=dict)
    correct_found: bool = True

    def canonical_label(self, display_label: str | None) -> str | None:
        if display_label is None:
            return None
        return self.label_map.get(display_label)

    def public_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": str(self.id),
            "question_text": self.question_text,
            "type": self.type,
            "paragraph": self.paragraph,
            "image_url": self.image_url,
            "latex": self.latex,
        }
        out.update(self.options)
        return out


def _type_value(value: Any) -> str:
    return str(getattr(value, "value", value) or "")


def _shuffle_options(question: Any, rng: SeededRandom) -> ShuffledQuestion:
    pairs = [(label, str(getattr(question, label, "") or "")) for label in OPTION_LABELS]
    shuffled = fisher_yates(pairs, rng)

    canonical_correct = str(getattr(question, "correct_option", "") or "")
    options: dict[str, str] = {}
    label_map: dict[str, str] = {}
    correct_display: str | None = None
    for display_label, (canonical_label, value) in zip(OPTION_LABELS, shuffled):
        options[display_label] = value
        label_map[display_label] = canonical_label
        if canonical_label == canonical_correct:
            correct_display = display_label

    if correct_display is None:
        log.warning(
            "question %s has correct_option %r outside %s; falling back to %s",
            getattr(question, "id", None),
            canonical_correct,
            ",".join(OPTION_LABELS),
            OPTION_LABELS[0],
        )

    return ShuffledQuestion(
        id=getattr(question, "id", None),
        question_text=str(getattr(question, "question_text", "") or ""),
        type=_type_value(getattr(question, "type", None)),
        paragraph=getattr(question, "paragraph", None),
        image_url=getattr(question, "image_url", None),
        latex=getattr(question, "latex", None),
        explanation=getattr(question, "explanation", None),
        options=options,
        correct_option=correct_display or OPTION_LABELS[0],
        label_map=label_map,
        correct_found=correct_display is not None,
    )


def shuffle_questions(questions: Sequence[Any], seed: int) -> list[ShuffledQuestion]:
    """Reorder questions, then the options of each question, from one stream.

    Input rows are never mutated. Sub-shuffles must run in presentation
    order on the same generator or the layout stops being reproducible.
    """
    rng = SeededRandom(seed)
    ordered = fisher_yates(questions, rng)
    return [_shuffle_options(q, rng) for q in ordered]


def shuffle_for_student(questions: Sequence[Any], student_id: Any, quiz_id: Any) -> list[ShuffledQuestion]:
    return shuffle_questions(questions, seed_for(student_id, quiz_id))
