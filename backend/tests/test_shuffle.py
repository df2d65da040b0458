import uuid
from types import SimpleNamespace

from quizdesk.models.quiz import OPTION_LABELS
from quizdesk.services.shuffle import (
    SeededRandom,
    fisher_yates,
    seed_for,
    shuffle_for_student,
    shuffle_questions,
)


def _questions(n: int = 6):
    out = []
    for i in range(n):
        out.append(
            SimpleNamespace(
                id=uuid.UUID(int=i + 1),
                question_text=f"Question {i}",
                type="text",
                paragraph=None,
                image_url=None,
                latex=None,
                explanation=None,
                option1=f"q{i}-a",
                option2=f"q{i}-b",
                option3=f"q{i}-c",
                option4=f"q{i}-d",
                correct_option=OPTION_LABELS[i % 4],
            )
        )
    return out


def test_seed_matches_rolling_hash():
    # "a-b" -> ((97 * 31) + 45) * 31 + 98
    assert seed_for("a", "b") == 94710


def test_seed_is_stable_and_unsigned():
    sid, qid = uuid.uuid4(), uuid.uuid4()
    assert seed_for(sid, qid) == seed_for(str(sid), str(qid))
    long_seed = seed_for("x" * 500, "y" * 500)
    assert 0 <= long_seed < 2**32
    assert seed_for(sid, qid) != seed_for(qid, sid)


def test_seeded_random_stream():
    rng = SeededRandom(94710)
    assert rng.random() == 81727 / 233280
    values = [rng.random() for _ in range(100)]
    assert all(0 <= v < 1 for v in values)


def test_fisher_yates_is_a_permutation_and_copies():
    items = list(range(20))
    out = fisher_yates(items, SeededRandom(42))
    assert sorted(out) == items
    assert items == list(range(20))


def test_shuffle_is_deterministic():
    qs = _questions()
    a = shuffle_questions(qs, 1234)
    b = shuffle_questions(qs, 1234)
    assert [(q.id, q.options, q.correct_option) for q in a] == [(q.id, q.options, q.correct_option) for q in b]


def test_shuffle_keeps_option_values_and_correct_value():
    qs = _questions()
    by_id = {q.id: q for q in qs}
    for q in shuffle_for_student(qs, uuid.uuid4(), uuid.uuid4()):
        canonical = by_id[q.id]
        assert list(q.options) == list(OPTION_LABELS)
        assert sorted(q.options.values()) == sorted(getattr(canonical, label) for label in OPTION_LABELS)
        assert q.options[q.correct_option] == getattr(canonical, canonical.correct_option)
        assert q.label_map[q.correct_option] == canonical.correct_option
        assert q.correct_found


def test_shuffle_covers_every_question_once():
    qs = _questions(10)
    out = shuffle_questions(qs, 99)
    assert sorted(q.id for q in out) == sorted(q.id for q in qs)


def test_shuffle_does_not_mutate_input():
    qs = _questions()
    before = [(q.option1, q.option2, q.option3, q.option4, q.correct_option) for q in qs]
    shuffle_questions(qs, 7)
    assert [(q.option1, q.option2, q.option3, q.option4, q.correct_option) for q in qs] == before


def test_different_students_usually_differ():
    qs = _questions(8)
    quiz_id = uuid.uuid4()
    layouts = {
        tuple((q.id, tuple(q.options.values())) for q in shuffle_for_student(qs, uuid.uuid4(), quiz_id))
        for _ in range(10)
    }
    assert len(layouts) > 1


def test_empty_question_list():
    assert shuffle_questions([], 5) == []


def test_unknown_correct_label_falls_back_and_flags():
    q = _questions(1)[0]
    q.correct_option = "option9"
    (out,) = shuffle_questions([q], 3)
    assert out.correct_option == "option1"
    assert out.correct_found is False


def test_public_view_hides_answer_key():
    (out,) = shuffle_questions(_questions(1), 11)
    public = out.public_dict()
    assert "correct_option" not in public
    assert "explanation" not in public
    assert {public[label] for label in OPTION_LABELS} == set(out.options.values())
