"""
Tests for the admin test-management and scoring configuration endpoints.
"""
from entrance.models import EntranceTest, TestSection, TestStatus, User, UserRole


class TestAdminAuth:
    """Tests for the X-Admin-Token requirement."""

    def test_missing_token(self, client, student):
        response = client.post("/v1/admin/tests", json={"student_id": student.id})
        assert response.status_code == 422

    def test_wrong_token(self, client, student):
        response = client.post(
            "/v1/admin/tests",
            json={"student_id": student.id},
            headers={"X-Admin-Token": "wrong"},
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid admin token."

    def test_bearer_token_is_not_enough(self, client, student, auth_headers):
        response = client.post(
            "/v1/admin/tests", json={"student_id": student.id}, headers=auth_headers
        )
        assert response.status_code == 422


class TestAssignEndpoint:
    """Tests for POST /v1/admin/tests."""

    def test_assign_defaults(self, client, db_session, student, admin_headers):
        response = client.post(
            "/v1/admin/tests", json={"student_id": student.id}, headers=admin_headers
        )

        assert response.status_code == 201
        data = response.json()
        assert data["student_id"] == student.id
        assert data["status"] == "assigned"
        assert data["test_type"] == "entrance"
        assert data["time_limit_seconds"] == 3000
        assert data["seed_start"] is None
        assert db_session.query(EntranceTest).count() == 1

    def test_assign_with_seeds(self, client, student, admin_headers):
        response = client.post(
            "/v1/admin/tests",
            json={
                "student_id": student.id,
                "test_type": "progress",
                "time_limit_seconds": 1800,
                "seed_start": {"grammar": "4.2", "listening": "3.3"},
            },
            headers=admin_headers,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["test_type"] == "progress"
        assert data["time_limit_seconds"] == 1800
        assert data["seed_start"] == {"grammar": "4.2", "listening": "3.3"}

    def test_assign_with_placement(self, client, student, admin_headers):
        response = client.post(
            "/v1/admin/tests",
            json={
                "student_id": student.id,
                "placement": {
                    "grade": 7,
                    "background": "multi_academy",
                    "highest_score": 96,
                    "weekly_reading_count": 5,
                    "weakest_section": "reading",
                },
            },
            headers=admin_headers,
        )

        assert response.status_code == 201
        seeds = response.json()["seed_start"]
        assert seeds["reading"] == "4.1"
        assert seeds["grammar"] == "4.3"
        assert seeds["__meta"]["source"] == "placement_profile"

    def test_malformed_seed(self, client, student, admin_headers):
        response = client.post(
            "/v1/admin/tests",
            json={"student_id": student.id, "seed_start": {"grammar": "2.9"}},
            headers=admin_headers,
        )
        assert response.status_code == 400

    def test_unknown_section(self, client, student, admin_headers):
        response = client.post(
            "/v1/admin/tests",
            json={"student_id": student.id, "seed_start": {"writing": "2.1"}},
            headers=admin_headers,
        )
        assert response.status_code == 400

    def test_unknown_student(self, client, admin_headers):
        response = client.post(
            "/v1/admin/tests", json={"student_id": 777}, headers=admin_headers
        )
        assert response.status_code == 400

    def test_both_seed_sources(self, client, student, admin_headers):
        response = client.post(
            "/v1/admin/tests",
            json={
                "student_id": student.id,
                "seed_start": {"grammar": "2.1"},
                "placement": {"grade": 5},
            },
            headers=admin_headers,
        )
        assert response.status_code == 422

    def test_invalid_background(self, client, student, admin_headers):
        response = client.post(
            "/v1/admin/tests",
            json={"student_id": student.id, "placement": {"background": "homeschool"}},
            headers=admin_headers,
        )
        assert response.status_code == 422

    def test_non_positive_limit(self, client, student, admin_headers):
        response = client.post(
            "/v1/admin/tests",
            json={"student_id": student.id, "time_limit_seconds": 0},
            headers=admin_headers,
        )
        assert response.status_code == 400

    def test_assign_to_staff_user(self, client, db_session, admin_headers):
        staff = User(email="desk@example.com", display_name="Desk", role=UserRole.STAFF)
        db_session.add(staff)
        db_session.commit()

        response = client.post(
            "/v1/admin/tests", json={"student_id": staff.id}, headers=admin_headers
        )

        assert response.status_code == 400
        assert "not a student" in response.json()["detail"]


class TestCancelAndReviewEndpoints:
    """Tests for POST /v1/admin/tests/{id}/cancel and /review."""

    def test_cancel(self, client, db_session, assigned_test, admin_headers):
        response = client.post(
            f"/v1/admin/tests/{assigned_test.id}/cancel", headers=admin_headers
        )

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        db_session.refresh(assigned_test)
        assert assigned_test.status == TestStatus.CANCELLED

    def test_cancel_twice(self, client, assigned_test, admin_headers):
        client.post(f"/v1/admin/tests/{assigned_test.id}/cancel", headers=admin_headers)
        response = client.post(
            f"/v1/admin/tests/{assigned_test.id}/cancel", headers=admin_headers
        )
        assert response.status_code == 400

    def test_cancelled_test_cannot_start(
        self, client, assigned_test, admin_headers, auth_headers
    ):
        client.post(f"/v1/admin/tests/{assigned_test.id}/cancel", headers=admin_headers)
        response = client.post(
            f"/v1/tests/{assigned_test.id}/start", headers=auth_headers
        )
        assert response.status_code == 400

    def test_review_flow(self, client, started_test, admin_headers, auth_headers):
        early = client.post(
            f"/v1/admin/tests/{started_test.id}/review", headers=admin_headers
        )
        assert early.status_code == 400

        client.post(f"/v1/tests/{started_test.id}/finalize", headers=auth_headers)
        response = client.post(
            f"/v1/admin/tests/{started_test.id}/review", headers=admin_headers
        )

        assert response.status_code == 200
        assert response.json()["status"] == "reviewed"

    def test_unknown_test(self, client, admin_headers):
        response = client.post("/v1/admin/tests/5555/cancel", headers=admin_headers)
        assert response.status_code == 404


class TestSectionWeightsEndpoints:
    """Tests for GET/PUT /v1/admin/config/section-weights."""

    def test_defaults_without_override(self, client, admin_headers):
        response = client.get("/v1/admin/config/section-weights", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["effective_weights"] == {
            "grammar": 0.3,
            "reading": 0.4,
            "listening": 0.2,
            "dialog": 0.1,
        }
        assert data["overrides"] is None
        assert data["updated_at"] is None

    def test_partial_override_merges_with_defaults(self, client, admin_headers):
        response = client.put(
            "/v1/admin/config/section-weights",
            json={"weights": {"dialog": 0.5}},
            headers=admin_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["overrides"] == {"dialog": 0.5}
        assert data["effective_weights"]["dialog"] == 0.5
        assert data["effective_weights"]["reading"] == 0.4
        assert data["updated_at"] is not None

    def test_negative_weight_rejected(self, client, admin_headers):
        response = client.put(
            "/v1/admin/config/section-weights",
            json={"weights": {"grammar": -1}},
            headers=admin_headers,
        )
        assert response.status_code == 400

    def test_unknown_section_rejected(self, client, admin_headers):
        response = client.put(
            "/v1/admin/config/section-weights",
            json={"weights": {"writing": 0.2}},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert "writing" in response.json()["detail"]

    def test_requires_admin_token(self, client, auth_headers):
        response = client.get("/v1/admin/config/section-weights", headers=auth_headers)
        assert response.status_code == 422

    def test_override_used_at_finalize(
        self, client, db_session, started_test, admin_headers, auth_headers
    ):
        reading = (
            db_session.query(TestSection)
            .filter(
                TestSection.test_id == started_test.id, TestSection.section == "reading"
            )
            .one()
        )
        reading.current_level, reading.current_sublevel = 5, 1
        db_session.commit()

        client.put(
            "/v1/admin/config/section-weights",
            json={
                "weights": {"reading": 1.0, "grammar": 0, "listening": 0, "dialog": 0}
            },
            headers=admin_headers,
        )
        response = client.post(
            f"/v1/tests/{started_test.id}/finalize", headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json()["weighted_level"] == 5.1
