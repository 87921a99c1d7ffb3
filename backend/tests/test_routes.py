"""
HTTP surface tests: status codes, payload shapes and error mapping.
"""

import pytest

from tutorledger.errors import StoreFailure


@pytest.fixture
def student(client, clock):
    response = client.post('/api/students', json={"name": "Olena", "balance": 2})
    assert response.status_code == 201
    return response.get_json()


class TestSystem:

    def test_health(self, client, clock):
        response = client.get('/health')

        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "healthy"
        assert data["now"] == "2026-10-18T00:00:00Z"
        assert data["database"]["details"]["students"] == 0


class TestStudentRoutes:

    def test_create_student(self, student):
        assert student["name"] == "Olena"
        assert student["balance"] == 2
        assert student["completed_lessons_count"] == 0

    @pytest.mark.parametrize("payload", [{}, {"name": ""}, {"name": "Olena", "balance": "1.5"}])
    def test_create_student_validation(self, client, payload):
        response = client.post('/api/students', json=payload)

        assert response.status_code == 400
        assert "error" in response.get_json()

    def test_get_unknown_student(self, client):
        response = client.get('/api/students/999999')

        assert response.status_code == 404
        assert response.get_json() == {"error": "Student 999999 not found"}

    def test_search(self, client, student):
        client.post('/api/students', json={"name": "Taras"})

        response = client.get('/api/students?q=ole')

        assert [s["name"] for s in response.get_json()] == ["Olena"]

    def test_low_balance_filter(self, client, student):
        client.post('/api/students', json={"name": "Taras", "balance": 8})
        client.post('/api/students', json={"name": "Yulia", "balance": -1})

        response = client.get('/api/students?low_balance=true')

        assert [s["name"] for s in response.get_json()] == ["Olena", "Yulia"]

    def test_stats(self, client, student):
        client.post('/api/students', json={"name": "Taras", "balance": -1})

        response = client.get('/api/students/stats')

        assert response.get_json() == {
            "total": 2,
            "low_balance": 2,
            "negative_balance": 1,
            "total_balance": 1,
        }

    def test_adjust_balance(self, client, student):
        response = client.post(f'/api/students/{student["id"]}/balance', json={"delta": 3})

        assert response.status_code == 200
        assert response.get_json()["balance"] == 5

    def test_adjust_balance_requires_delta(self, client, student):
        response = client.post(f'/api/students/{student["id"]}/balance', json={})

        assert response.status_code == 400

    def test_adjust_balance_rejects_decimal(self, client, student):
        response = client.post(f'/api/students/{student["id"]}/balance', json={"delta": 1.5})

        assert response.status_code == 400

    def test_delete_student(self, client, student):
        assert client.delete(f'/api/students/{student["id"]}').status_code == 204
        assert client.get(f'/api/students/{student["id"]}').status_code == 404


class TestLessonRoutes:

    def create(self, client, student_id, when, **flags):
        return client.post('/api/lessons', json={"student_id": student_id, "datetime": when, **flags})

    def test_create_future_lesson(self, client, student):
        response = self.create(client, student["id"], "2026-10-20T10:00:00Z")

        assert response.status_code == 201
        data = response.get_json()
        assert data["status"] == "PENDING"
        assert data["student_name"] == "Olena"
        assert data["balance"] == 2

    def test_create_requires_fields(self, client, student):
        response = client.post('/api/lessons', json={"student_id": student["id"]})

        assert response.status_code == 400

    def test_create_paid_pending_lesson_conflicts(self, client, student):
        response = self.create(client, student["id"], "2026-10-20T10:00:00Z", is_paid=True)

        assert response.status_code == 409

    def test_create_completed_lesson_without_is_paid_allocates(self, client, student):
        response = self.create(client, student["id"], "2026-10-17T10:00:00Z", is_completed=True)

        assert response.status_code == 201
        data = response.get_json()
        assert data["status"] == "COMPLETED_PAID"
        assert data["balance"] == 1

    def test_create_for_unknown_student(self, client):
        response = self.create(client, 999999, "2026-10-20T10:00:00Z")

        assert response.status_code == 404

    def test_list_defaults_to_current_week(self, client, student):
        self.create(client, student["id"], "2026-10-17T10:00:00Z", is_completed=True, is_paid=False)
        self.create(client, student["id"], "2026-10-20T10:00:00Z")

        response = client.get('/api/lessons')

        assert [lesson["datetime"] for lesson in response.get_json()] == ["2026-10-17T10:00:00Z"]

    def test_list_explicit_range(self, client, student):
        self.create(client, student["id"], "2026-10-20T10:00:00Z")

        response = client.get('/api/lessons?start=2026-10-19T00:00:00Z&end=2026-10-26T00:00:00Z')

        assert len(response.get_json()) == 1

    def test_list_rejects_inverted_range(self, client):
        response = client.get('/api/lessons?start=2026-10-26T00:00:00Z&end=2026-10-19T00:00:00Z')

        assert response.status_code == 400

    def test_lesson_stats(self, client, student):
        self.create(client, student["id"], "2026-10-16T10:00:00Z", is_completed=True, is_paid=True)
        self.create(client, student["id"], "2026-10-17T10:00:00Z", is_completed=True, is_paid=False)

        response = client.get('/api/lessons/stats')

        data = response.get_json()
        assert data["paid"] == 1
        assert data["unpaid"] == 1
        assert data["completed"] == 2

    def test_reschedule(self, client, student):
        lesson = self.create(client, student["id"], "2026-10-20T10:00:00Z").get_json()

        response = client.patch(f'/api/lessons/{lesson["id"]}', json={"datetime": "2026-10-21T12:00:00Z"})

        assert response.status_code == 200
        data = response.get_json()
        assert data["datetime"] == "2026-10-21T12:00:00Z"
        assert data["previous_datetime"] == "2026-10-20T10:00:00Z"

    def test_patch_rejects_bad_flag(self, client, student):
        lesson = self.create(client, student["id"], "2026-10-20T10:00:00Z").get_json()

        response = client.patch(f'/api/lessons/{lesson["id"]}', json={"is_completed": "maybe"})

        assert response.status_code == 400

    def test_toggle_payment(self, client, student):
        lesson = self.create(client, student["id"], "2026-10-17T10:00:00Z", is_completed=True, is_paid=False).get_json()

        response = client.post(f'/api/lessons/{lesson["id"]}/toggle-payment')

        assert response.status_code == 200
        assert response.get_json()["status"] == "COMPLETED_PAID"
        assert response.get_json()["balance"] == 1

    def test_toggle_payment_on_pending_conflicts(self, client, student):
        lesson = self.create(client, student["id"], "2026-10-20T10:00:00Z").get_json()

        response = client.post(f'/api/lessons/{lesson["id"]}/toggle-payment')

        assert response.status_code == 409

    def test_delete_paid_lesson_refunds(self, client, student):
        lesson = self.create(client, student["id"], "2026-10-17T10:00:00Z", is_completed=True, is_paid=True).get_json()
        assert lesson["balance"] == 1

        assert client.delete(f'/api/lessons/{lesson["id"]}').status_code == 204
        assert client.get(f'/api/students/{student["id"]}').get_json()["balance"] == 2
        assert client.get(f'/api/lessons/{lesson["id"]}').status_code == 404

    def test_sweep(self, client, student, clock):
        self.create(client, student["id"], "2026-10-20T10:00:00Z")
        clock.set(clock.now().replace(day=21))

        response = client.post('/api/lessons/sweep')

        assert response.get_json() == {"completed": 1}

    def test_store_failure_is_500(self, client, engine, monkeypatch):
        def boom():
            raise StoreFailure("run_completion_sweep failed: disk I/O error", operation="run_completion_sweep")

        monkeypatch.setattr(engine, "run_completion_sweep", boom)

        response = client.post('/api/lessons/sweep')

        assert response.status_code == 500
        assert response.get_json() == {"error": "Internal server error"}


class TestScheduleRoutes:

    def test_create_and_list_slots(self, client, student):
        response = client.post(f'/api/students/{student["id"]}/schedule', json={"day_of_week": 0, "time": "9:00"})

        assert response.status_code == 201
        assert response.get_json()["time"] == "09:00"
        slots = client.get(f'/api/students/{student["id"]}/schedule').get_json()
        assert [(s["day_of_week"], s["time"]) for s in slots] == [(0, "09:00")]

    def test_duplicate_slot_conflicts(self, client, student):
        url = f'/api/students/{student["id"]}/schedule'
        client.post(url, json={"day_of_week": 0, "time": "10:00"})

        response = client.post(url, json={"day_of_week": 0, "time": "10:00"})

        assert response.status_code == 409

    def test_invalid_slot(self, client, student):
        response = client.post(f'/api/students/{student["id"]}/schedule', json={"day_of_week": 9, "time": "10:00"})

        assert response.status_code == 400

    def test_expand(self, client, student):
        url = f'/api/students/{student["id"]}/schedule'
        client.post(url, json={"day_of_week": 0, "time": "10:00"})
        client.post(url, json={"day_of_week": 2, "time": "10:00"})

        response = client.post(f'{url}/expand')

        assert response.get_json() == {"created": 2}

    def test_slot_lifecycle(self, client, student):
        slot = client.post(
            f'/api/students/{student["id"]}/schedule', json={"day_of_week": 3, "time": "17:00"}
        ).get_json()

        assert client.post(f'/api/schedule/{slot["id"]}/deactivate').get_json()["is_active"] is False
        active = client.get(f'/api/students/{student["id"]}/schedule?active_only=true').get_json()
        assert active == []
        assert client.post(f'/api/schedule/{slot["id"]}/reactivate').get_json()["is_active"] is True
        assert client.post(f'/api/schedule/{slot["id"]}/toggle').get_json()["is_active"] is False
        assert client.delete(f'/api/schedule/{slot["id"]}').status_code == 204
        assert client.delete(f'/api/schedule/{slot["id"]}').status_code == 404
