from datetime import datetime, timedelta, timezone
import uuid

from conftest import OPTIONS
from quizdesk.models.quiz import OPTION_LABELS
from quizdesk.models.user import UserRole


def _correct_labels(client, quiz_id, headers, canonical):
    """Map each displayed question to the label that carries the canonical right answer."""
    r = client.get(f"/quizzes/{quiz_id}", headers=headers)
    assert r.status_code == 200
    right_text = {text: opts[int(correct[-1]) - 1] for text, opts, correct in canonical}
    out = {}
    for q in r.json()["questions"]:
        out[q["id"]] = next(label for label in OPTION_LABELS if q[label] == right_text[q["question_text"]])
    return out


def test_student_takes_a_quiz_end_to_end(client, db, student, live_quiz, headers_for):
    h = headers_for(student)
    qid = str(live_quiz.id)

    r = client.get("/quizzes", headers=h)
    assert r.status_code == 200
    assert qid in [q["id"] for q in r.json()["quizzes"]]

    r = client.get(f"/quizzes/{qid}", headers=h)
    assert r.status_code == 200
    body = r.json()
    assert body["attempted"] is False
    assert len(body["questions"]) == 4
    for q in body["questions"]:
        assert "correct_option" not in q
        assert "explanation" not in q

    r = client.post(f"/quizzes/{qid}/start", headers=h)
    assert r.status_code == 201
    attempt = r.json()["attempt"]
    assert attempt["submitted"] is False
    assert 0 < r.json()["time_left_seconds"] <= 600

    r = client.post(f"/quizzes/{qid}/start", headers=h)
    assert r.status_code == 200
    assert r.json()["attempt"]["id"] == attempt["id"]
    assert r.json()["attempt"]["end_time"] == attempt["end_time"]

    r = client.get(f"/quizzes/{qid}/attempt", headers=h)
    assert r.status_code == 200

    labels = _correct_labels(client, qid, h, OPTIONS)
    first_id = next(iter(labels))
    r = client.post(f"/quizzes/{qid}/auto-save", headers=h, json={"questionId": first_id, "answer": labels[first_id]})
    assert r.status_code == 200
    assert r.json() == {"ok": True}

    answers = [{"questionId": q, "answer": label} for q, label in labels.items()]
    r = client.post(f"/quizzes/{qid}/submit", headers=h, json={"answers": answers})
    assert r.status_code == 200
    result = r.json()["result"]
    assert (result["score"], result["total"]) == (4, 4)

    r = client.get(f"/quizzes/{qid}", headers=h)
    assert r.json()["attempted"] is True

    r = client.post(f"/quizzes/{qid}/start", headers=h)
    assert r.status_code == 403
    assert r.json()["error_code"] == "already_submitted"
    assert r.json()["attempted"] is True

    r = client.post(f"/quizzes/{qid}/submit", headers=h, json={"answers": []})
    assert r.status_code == 403

    r = client.get("/me/results", headers=h)
    assert r.status_code == 200
    rows = r.json()["results"]
    assert [(row["quiz_id"], row["score"], row["total"]) for row in rows] == [(qid, 4, 4)]

    r = client.get(f"/me/results/{qid}", headers=h)
    assert r.status_code == 200
    detail = r.json()
    assert detail["result"]["score"] == 4
    assert detail["quiz"]["id"] == qid
    assert all(item["is_correct"] for item in detail["breakdown"])
    assert {item["question_id"] for item in detail["breakdown"]} == set(labels)


def test_listing_is_scoped_to_published_quizzes_of_the_class(client, student, make_quiz, headers_for):
    mine = make_quiz()
    everyone = make_quiz(class_name=None)
    other_class = make_quiz(class_name="9C")
    hidden = make_quiz(published=False)

    r = client.get("/quizzes", headers=headers_for(student))
    ids = {q["id"] for q in r.json()["quizzes"]}
    assert {str(mine.id), str(everyone.id)} <= ids
    assert str(other_class.id) not in ids
    assert str(hidden.id) not in ids

    r = client.get(f"/quizzes/{hidden.id}", headers=headers_for(student))
    assert r.status_code == 404
    assert r.json()["error_code"] == "not_found"


def test_each_student_sees_a_stable_layout(client, make_user, live_quiz, headers_for):
    a = make_user()
    h = headers_for(a)
    first = client.get(f"/quizzes/{live_quiz.id}", headers=h).json()["questions"]
    second = client.get(f"/quizzes/{live_quiz.id}", headers=h).json()["questions"]
    assert first == second


def test_window_errors(client, student, make_quiz, headers_for):
    now = datetime.now(timezone.utc)
    future = make_quiz(start=now + timedelta(days=1))
    past = make_quiz(start=now - timedelta(days=2), end=now - timedelta(days=1))
    h = headers_for(student)

    r = client.post(f"/quizzes/{future.id}/start", headers=h)
    assert r.status_code == 400
    assert r.json()["error_code"] == "quiz_not_started"

    r = client.post(f"/quizzes/{past.id}/start", headers=h)
    assert r.status_code == 400
    assert r.json()["error_code"] == "quiz_ended"

    r = client.post(f"/quizzes/{uuid.uuid4()}/start", headers=h)
    assert r.status_code == 404

    r = client.post("/quizzes/not-a-uuid/start", headers=h)
    assert r.status_code == 400


def test_submit_rejects_foreign_questions(client, student, live_quiz, headers_for):
    h = headers_for(student)
    assert client.post(f"/quizzes/{live_quiz.id}/start", headers=h).status_code == 201

    r = client.post(
        f"/quizzes/{live_quiz.id}/submit",
        headers=h,
        json={"answers": [{"questionId": str(uuid.uuid4()), "answer": "option1"}]},
    )
    assert r.status_code == 400
    assert r.json()["error_code"] == "validation_error"

    r = client.get(f"/quizzes/{live_quiz.id}/attempt", headers=h)
    assert r.status_code == 200
    assert r.json()["attempt"]["submitted"] is False


def test_submit_without_start_is_not_found(client, student, live_quiz, headers_for):
    r = client.post(f"/quizzes/{live_quiz.id}/submit", headers=headers_for(student), json={"answers": []})
    assert r.status_code == 404


def test_auto_save_needs_a_question_id(client, student, live_quiz, headers_for):
    r = client.post(f"/quizzes/{live_quiz.id}/auto-save", headers=headers_for(student), json={"answer": "option1"})
    assert r.status_code == 400
    assert r.json()["error_code"] == "validation_error"


def test_review_before_submit_is_not_found(client, student, live_quiz, headers_for):
    h = headers_for(student)
    client.post(f"/quizzes/{live_quiz.id}/start", headers=h)
    r = client.get(f"/me/results/{live_quiz.id}", headers=h)
    assert r.status_code == 404


def test_admins_cannot_take_quizzes(client, make_user, live_quiz, headers_for):
    admin = make_user(UserRole.admin, class_name=None)
    h = headers_for(admin)

    r = client.post(f"/quizzes/{live_quiz.id}/start", headers=h)
    assert r.status_code == 403
    assert r.json()["error_code"] == "forbidden"

    r = client.get(f"/quizzes/{live_quiz.id}", headers=h)
    assert r.status_code == 200
    assert r.json()["attempted"] is None
    assert all("correct_option" in q for q in r.json()["questions"])


def test_submit_rate_limit_is_per_student(client, make_user, live_quiz, headers_for):
    a, b = make_user(), make_user()
    url = f"/quizzes/{live_quiz.id}/submit"

    codes = [client.post(url, headers=headers_for(a), json={"answers": []}).status_code for _ in range(21)]
    assert 429 not in codes[:20]
    assert codes[20] == 429

    # Same client address, different student.
    r = client.post(url, headers=headers_for(b), json={"answers": []})
    assert r.status_code == 404
