"""
End-to-end tests for the FastAPI app against the in-memory database.
"""

from datetime import datetime, timedelta

from spiral_app.config.constants import OPTION_TIER_LIMITS
from spiral_app.persistence.repository import OptionRepository

MOOD = {"mood": 7, "note": "ok"}


def post_mood(client, user_id=1, data=None):
    return client.post("/widgets/mood-tracker/episodes", json={"user_id": user_id, "data": data or MOOD})


class TestWidgetEndpoints:
    def test_list_widgets(self, client):
        response = client.get("/widgets", params={"user_id": 1})
        assert response.status_code == 200
        widgets = response.json()["widgets"]
        assert len(widgets) == 8
        assert all(w["accessible"] for w in widgets)

    def test_anonymous_list_not_accessible(self, client):
        widgets = client.get("/widgets").json()["widgets"]
        assert not any(w["accessible"] for w in widgets)

    def test_schema_locks_by_tier(self, client):
        response = client.get("/widgets/mood-tracker/schema", params={"user_id": 1})
        assert response.status_code == 200
        body = response.json()
        assert body["tier"] == "free"
        fields = {f["name"]: f for f in body["fields"]}
        assert fields["mood"]["locked"] is False
        assert fields["journal"]["locked"] is True

    def test_schema_unknown_widget(self, client):
        response = client.get("/widgets/dream-journal/schema")
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "unknown_widget"

    def test_toggle_widget(self, client):
        response = client.put("/widgets/goal-setting/enabled", json={"enabled": False})
        assert response.json() == {"widget_id": "goal-setting", "enabled": False}

        response = client.post(
            "/widgets/goal-setting/episodes",
            json={"user_id": 1, "data": {"action_type": "reflect"}},
        )
        assert response.status_code == 403

        response = client.put("/widgets/goal-setting/enabled", json={"enabled": True})
        assert response.json()["enabled"] is True

    def test_update_settings(self, client):
        response = client.put("/widgets/mood-tracker/settings", json={"settings": {"reminder_time": "21:00"}})
        assert response.status_code == 200
        assert response.json()["settings"]["reminder_time"] == "21:00"
        assert response.json()["settings"]["show_energy"] is True


class TestEpisodeEndpoints:
    def test_save_episode(self, client):
        response = post_mood(client, data={"mood": 2})
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Episode saved successfully!"
        assert body["severity"] == 9
        assert body["episode_id"] > 0

    def test_client_ip_from_forwarded_header(self, client):
        client.post(
            "/widgets/mood-tracker/episodes",
            json={"user_id": 1, "data": MOOD},
            headers={"X-Forwarded-For": "192.0.2.10, 10.0.0.1", "User-Agent": "spiral-test"},
        )
        episode = client.get("/widgets/mood-tracker/episodes", params={"user_id": 1}).json()["episodes"][0]
        assert episode["metadata"]["ip_address"] == "192.0.2.10"
        assert episode["metadata"]["user_agent"] == "spiral-test"

    def test_validation_error(self, client):
        response = post_mood(client, data={"mood": 42})
        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["code"] == "validation_failed"
        assert detail["errors"] == {"mood": "Mood must be at most 10."}

    def test_limit_reached(self, client, db_session):
        OptionRepository(db_session).set(
            OPTION_TIER_LIMITS, {"free": {"episodes_per_month": 1, "widgets": "all"}}
        )
        assert post_mood(client).status_code == 200
        response = post_mood(client)
        assert response.status_code == 429
        assert response.json()["detail"]["code"] == "monthly_limit_reached"

    def test_unknown_widget(self, client):
        response = client.post("/widgets/dream-journal/episodes", json={"user_id": 1, "data": {}})
        assert response.status_code == 404

    def test_list_and_delete(self, client):
        ids = [post_mood(client).json()["episode_id"] for _ in range(3)]

        page = client.get("/widgets/mood-tracker/episodes", params={"user_id": 1, "limit": 2}).json()
        assert len(page["episodes"]) == 2
        assert page["has_more"] is True

        assert client.delete(f"/episodes/{ids[0]}", params={"user_id": 2}).status_code == 403
        assert client.delete(f"/episodes/{ids[0]}", params={"user_id": 1}).status_code == 200
        assert client.delete(f"/episodes/{ids[0]}", params={"user_id": 1}).status_code == 404

        page = client.get("/widgets/mood-tracker/episodes", params={"user_id": 1}).json()
        assert len(page["episodes"]) == 2
        assert page["has_more"] is False


class TestUserEndpoints:
    def test_export_csv(self, client):
        post_mood(client)
        response = client.get("/users/1/export", params={"widget_id": "mood-tracker"})
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "spiral-1-mood-tracker.csv" in response.headers["content-disposition"]
        lines = response.text.strip().splitlines()
        assert lines[0] == "id,widget_id,severity,created_at,data,metadata"
        assert len(lines) == 2

    def test_analytics(self, client):
        post_mood(client)
        response = client.get("/users/1/analytics/mood-tracker")
        assert response.status_code == 200
        body = response.json()
        assert body["summary"]["count"] == 1
        assert body["streaks"]["current"] == 1
        assert body["mood"]["average_mood"] == 7.0

    def test_membership_update_unlocks_fields(self, client):
        response = client.put(
            "/users/1/membership", json={"tier": "gold", "membership_level": "explorer"}
        )
        assert response.status_code == 200
        assert response.json()["tier"] == "gold"
        assert response.json()["membership_level"] == "explorer"

        fields = {
            f["name"]: f
            for f in client.get("/widgets/mood-tracker/schema", params={"user_id": 1}).json()["fields"]
        }
        assert fields["journal"]["locked"] is False
        assert fields["gratitude"]["locked"] is True

    def test_invalid_tier(self, client):
        assert client.put("/users/1/membership", json={"tier": "diamond"}).status_code == 400

    def test_expire_memberships(self, client):
        past = (datetime.utcnow() - timedelta(days=1)).isoformat()
        client.put("/users/5/membership", json={"tier": "silver", "expires_at": past})
        response = client.post("/memberships/expire")
        assert response.json() == {"expired_user_ids": [5], "count": 1}
        assert client.get("/widgets/mood-tracker/schema", params={"user_id": 5}).json()["tier"] == "free"


class TestContentEndpoint:
    def test_access(self, client):
        assert client.get("/content/dashboard/access").json()["allowed"] is True
        assert client.get("/content/member_only/access").json()["reason"] == "login_required"

        client.put("/users/1/membership", json={"tier": "free", "membership_level": "explorer"})
        assert client.get("/content/insights/access", params={"user_id": 1}).json()["allowed"] is True
        assert client.get("/content/predictions/access", params={"user_id": 1}).json()["allowed"] is False
