"""HTTP tests for daily progress log submission."""

import uuid
from datetime import date, timedelta

import pytest

from app.config import settings
from app.db.models import ProgressLog

URL = "/api/progress-logs/"


@pytest.fixture
def setup(make):
    teacher = make.teacher()
    student = make.student(teacher)
    lesson = make.lesson(topics=("Fractions",))
    assignment = make.assignment(student, lesson.topics[0], question_count=200)
    return teacher, student, assignment


def _body(assignment, **counts):
    payload = {
        "assignment_id": str(assignment.id),
        "right_count": 0,
        "wrong_count": 0,
        "empty_count": 0,
    }
    payload.update(counts)
    return payload


class TestSubmit:
    def test_creates_log_for_today(self, client, db, make, setup):
        _, student, assignment = setup

        response = client.post(
            URL, json=_body(assignment, right_count=7, wrong_count=3), headers=make.auth(student)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["right_count"] == 7
        assert data["bonus_count"] == 0
        assert data["log_date"] == date.today().isoformat()

    def test_resubmitting_same_day_overwrites(self, client, db, make, setup):
        _, student, assignment = setup
        headers = make.auth(student)

        client.post(URL, json=_body(assignment, right_count=7), headers=headers)
        response = client.post(URL, json=_body(assignment, right_count=9, bonus_count=2), headers=headers)

        assert response.status_code == 200
        logs = db.query(ProgressLog).filter(ProgressLog.assignment_id == assignment.id).all()
        assert len(logs) == 1
        assert logs[0].right_count == 9
        assert logs[0].bonus_count == 2

    def test_backdated_log(self, client, make, setup):
        _, student, assignment = setup
        yesterday = date.today() - timedelta(days=1)

        response = client.post(
            URL,
            json=_body(assignment, right_count=1, log_date=yesterday.isoformat()),
            headers=make.auth(student),
        )

        assert response.status_code == 200
        assert response.json()["log_date"] == yesterday.isoformat()

    def test_future_date_rejected(self, client, make, setup):
        _, student, assignment = setup
        tomorrow = date.today() + timedelta(days=1)

        response = client.post(
            URL, json=_body(assignment, log_date=tomorrow.isoformat()), headers=make.auth(student)
        )

        assert response.status_code == 400
        assert "future" in response.json()["detail"]

    def test_too_old_date_rejected(self, client, make, setup):
        _, student, assignment = setup
        ancient = date.today() - timedelta(days=settings.PROGRESS_LOG_MAX_AGE_DAYS + 1)

        response = client.post(
            URL, json=_body(assignment, log_date=ancient.isoformat()), headers=make.auth(student)
        )

        assert response.status_code == 400

    def test_daily_cap(self, client, make, setup):
        _, student, assignment = setup

        response = client.post(
            URL,
            json=_body(assignment, right_count=settings.MAX_DAILY_QUESTIONS, wrong_count=1),
            headers=make.auth(student),
        )

        assert response.status_code == 400

    def test_negative_counts_rejected(self, client, make, setup):
        _, student, assignment = setup
        response = client.post(URL, json=_body(assignment, wrong_count=-1), headers=make.auth(student))
        assert response.status_code == 422

    def test_inactive_assignment_rejected(self, client, make, setup):
        _, student, assignment = setup
        finished = make.assignment(
            student,
            assignment.topic,
            start=date.today() - timedelta(days=30),
            end=date.today() - timedelta(days=10),
        )

        response = client.post(URL, json=_body(finished, right_count=1), headers=make.auth(student))

        assert response.status_code == 403

    def test_someone_elses_assignment_rejected(self, client, make, setup):
        teacher, _, assignment = setup
        intruder = make.student(teacher)

        response = client.post(URL, json=_body(assignment, right_count=1), headers=make.auth(intruder))

        assert response.status_code == 403

    def test_unknown_assignment_rejected(self, client, make, setup):
        _, student, _ = setup
        response = client.post(
            URL,
            json={"assignment_id": str(uuid.uuid4()), "right_count": 1, "wrong_count": 0, "empty_count": 0},
            headers=make.auth(student),
        )
        assert response.status_code == 403

    def test_submission_invalidates_cached_metrics(self, client, make, setup, cache):
        teacher, student, assignment = setup
        metrics_url = f"/api/progress/students/{student.id}/metrics"
        teacher_headers = make.auth(teacher)

        before = client.get(metrics_url, headers=teacher_headers).json()
        client.post(URL, json=_body(assignment, right_count=50), headers=make.auth(student))
        after = client.get(metrics_url, headers=teacher_headers).json()

        assert before["program_progress"] == 0.0
        assert after["program_progress"] == 25.0
        assert after["concept_mastery"] == 100.0


class TestRead:
    def test_returns_assignment_and_log(self, client, make, setup):
        _, student, assignment = setup
        make.log(assignment, right=4, wrong=1)

        response = client.get(URL, headers=make.auth(student))

        assert response.status_code == 200
        data = response.json()
        assert data["assignment_id"] == str(assignment.id)
        assert data["log"]["right_count"] == 4

    def test_day_without_log(self, client, make, setup):
        _, student, assignment = setup

        response = client.get(URL, headers=make.auth(student))

        assert response.status_code == 200
        assert response.json()["log"] is None

    def test_no_active_assignment(self, client, make, setup):
        teacher, _, _ = setup
        idle = make.student(teacher)

        response = client.get(URL, headers=make.auth(idle))

        assert response.status_code == 404

    def test_future_date_rejected(self, client, make, setup):
        _, student, _ = setup
        tomorrow = date.today() + timedelta(days=1)

        response = client.get(URL, params={"log_date": tomorrow.isoformat()}, headers=make.auth(student))

        assert response.status_code == 400
