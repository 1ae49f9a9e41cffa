from fastapi.testclient import TestClient

from diagnostics_app.models.tracking import AnomalyDetection, VisitorLog, VisitorSession

ALICE = {"X-User-Id": "alice"}
BOB = {"X-User-Id": "bob"}


def create_link(client, headers=ALICE, **fields):
    response = client.post("/api/v1/tracking/links", json={"link_name": "Newsletter", **fields}, headers=headers)
    assert response.status_code == 201
    return response.json()


def visit(client, code, ip, session_id=None, **headers):
    params = {"session_id": session_id} if session_id else None
    return client.get(
        f"/t/{code}",
        params=params,
        headers={"X-Forwarded-For": ip, **headers},
        follow_redirects=False,
    )


class TestTrackingLinks:
    """Test link management (owner only)"""

    def test_create_link(self, client: TestClient):
        data = create_link(client, description="March mailing", max_visits=10)

        assert data["user_id"] == "alice"
        assert data["link_name"] == "Newsletter"
        assert data["is_active"] is True
        assert data["max_visits"] == 10
        assert len(data["link_code"]) == 16
        assert data["tracking_url"].endswith(f"/t/{data['link_code']}")

    def test_requires_identity(self, client: TestClient):
        response = client.post("/api/v1/tracking/links", json={"link_name": "x"})
        assert response.status_code == 401

    def test_invalid_target_url(self, client: TestClient):
        response = client.post(
            "/api/v1/tracking/links", json={"link_name": "x", "target_url": "not-a-url"}, headers=ALICE
        )
        assert response.status_code == 422

    def test_links_are_private(self, client: TestClient):
        link = create_link(client)
        create_link(client, headers=BOB, link_name="Bob's link")

        assert [item["id"] for item in client.get("/api/v1/tracking/links", headers=ALICE).json()] == [link["id"]]
        assert client.get(f"/api/v1/tracking/links/{link['id']}", headers=BOB).status_code == 404
        assert client.get(f"/api/v1/tracking/links/{link['id']}", headers=ALICE).status_code == 200

    def test_update_link(self, client: TestClient):
        link = create_link(client)

        response = client.patch(
            f"/api/v1/tracking/links/{link['id']}",
            json={"link_name": "Renamed", "target_url": "https://example.com/landing"},
            headers=ALICE,
        )
        assert response.status_code == 200
        assert response.json()["link_name"] == "Renamed"
        assert response.json()["target_url"] == "https://example.com/landing"
        # Fields left out of the patch keep their values
        assert response.json()["collect_user_agent"] is True

        assert client.patch(
            f"/api/v1/tracking/links/{link['id']}", json={"link_name": "Hijacked"}, headers=BOB
        ).status_code == 404

    def test_null_only_clears_optional_fields(self, client: TestClient):
        link = create_link(client, description="Spring campaign", max_visits=10)

        response = client.patch(
            f"/api/v1/tracking/links/{link['id']}",
            json={"link_name": None, "is_active": None, "description": None, "max_visits": None},
            headers=ALICE,
        )
        assert response.status_code == 200

        data = response.json()
        assert data["link_name"] == "Newsletter"
        assert data["is_active"] is True
        assert data["description"] is None
        assert data["max_visits"] is None


class TestVisitEndpoint:
    """Test the public /t/{code} endpoint"""

    def test_visit_without_target_returns_json(self, client: TestClient):
        link = create_link(client)

        response = visit(client, link["link_code"], "81.2.69.142")
        assert response.status_code == 200

        data = response.json()
        assert data["recorded"] is True
        assert data["link_name"] == "Newsletter"
        assert data["threat_level"] == "low"
        assert response.cookies.get("visitor_session") == data["session_id"]

    def test_visit_with_target_redirects(self, client: TestClient):
        link = create_link(client, target_url="https://example.com/landing")

        response = visit(client, link["link_code"], "81.2.69.142")

        assert response.status_code == 302
        assert response.headers["location"] == "https://example.com/landing"
        assert "visitor_session" in response.cookies

    def test_unknown_code(self, client: TestClient):
        assert visit(client, "doesnotexist", "81.2.69.142").status_code == 404

    def test_inactive_link(self, client: TestClient):
        link = create_link(client)
        visit(client, link["link_code"], "81.2.69.142")

        client.patch(f"/api/v1/tracking/links/{link['id']}", json={"is_active": False}, headers=ALICE)

        assert visit(client, link["link_code"], "81.2.69.142").status_code == 404

    def test_expired_link(self, client: TestClient):
        link = create_link(client, expires_at="2020-01-01T00:00:00Z")

        response = visit(client, link["link_code"], "81.2.69.142")

        assert response.status_code == 410
        assert response.json()["error"] == "LINK_UNAVAILABLE"
        assert response.json()["message"] == "Tracking link has expired"

    def test_visit_limit(self, client: TestClient):
        link = create_link(client, max_visits=1)

        assert visit(client, link["link_code"], "81.2.69.142").status_code == 200

        response = visit(client, link["link_code"], "81.2.69.160")
        assert response.status_code == 410
        assert response.json()["message"] == "Tracking link reached its visit limit"

    def test_visit_is_logged_with_geolocation(self, client: TestClient):
        link = create_link(client)
        visit(client, link["link_code"], "81.2.69.142, 10.0.0.1", Referer="https://news.example/")

        logs = client.get(f"/api/v1/tracking/links/{link['id']}/logs", headers=ALICE).json()
        assert len(logs) == 1
        log = logs[0]
        assert log["ip_address"] == "81.2.69.142"
        assert log["city"] == "London"
        assert log["country_code"] == "GB"
        assert log["latitude"] == 51.5074
        assert log["asn"] == "AS20712 Andrews & Arnold Ltd"
        assert log["referrer"] == "https://news.example/"
        assert log["user_agent"] == "testclient"
        assert log["is_suspicious"] is False
        assert log["anomaly_score"] == 0

    def test_collection_flags_are_honoured(self, client: TestClient):
        link = create_link(client, collect_user_agent=False, collect_referrer=False)
        visit(client, link["link_code"], "81.2.69.142", Referer="https://news.example/")

        log = client.get(f"/api/v1/tracking/links/{link['id']}/logs", headers=ALICE).json()[0]
        assert log["user_agent"] is None
        assert log["referrer"] is None

    def test_ungeolocated_visit_is_still_recorded(self, client: TestClient):
        link = create_link(client)

        response = visit(client, link["link_code"], "10.0.0.1")
        assert response.status_code == 200
        assert response.json()["threat_level"] == "unknown"

        log = client.get(f"/api/v1/tracking/links/{link['id']}/logs", headers=ALICE).json()[0]
        assert log["country"] is None
        assert log["is_tor"] is False

    def test_cookie_keeps_the_session(self, client: TestClient):
        link = create_link(client)

        first = visit(client, link["link_code"], "81.2.69.142").json()
        second = visit(client, link["link_code"], "81.2.69.160").json()

        assert first["session_id"] == second["session_id"]

        sessions = client.get(f"/api/v1/tracking/links/{link['id']}/sessions", headers=ALICE).json()
        assert len(sessions) == 1
        assert sessions[0]["total_visits"] == 2
        assert sessions[0]["unique_ips"] == ["81.2.69.142", "81.2.69.160"]
        assert sessions[0]["countries"] == ["United Kingdom"]


class TestAnomaliesAndAnalytics:
    """Test collected data reads and anomaly alerts"""

    def test_rapid_location_change(self, client: TestClient):
        link = create_link(client)

        visit(client, link["link_code"], "81.2.69.142", session_id="sess-1")
        visit(client, link["link_code"], "24.48.0.1", session_id="sess-1")

        anomalies = client.get(f"/api/v1/tracking/links/{link['id']}/anomalies", headers=ALICE).json()
        assert len(anomalies) == 1
        anomaly = anomalies[0]
        assert anomaly["anomaly_type"] == "rapid_location_change"
        assert anomaly["severity"] == "high"
        assert anomaly["evidence"]["prev_location"] == "London, United Kingdom"
        assert anomaly["evidence"]["new_location"] == "Montreal, Canada"
        assert anomaly["evidence"]["distance_km"] > 5000

        sessions = client.get(f"/api/v1/tracking/links/{link['id']}/sessions", headers=ALICE).json()
        assert sessions[0]["is_suspicious"] is True
        assert sessions[0]["anomaly_flags"] == ["rapid_location_change"]

        alerts = client.get("/api/v1/alerts", headers=ALICE).json()
        assert len(alerts) == 1
        assert alerts[0]["title"] == "Suspicious visit on Newsletter"
        assert alerts[0]["severity"] == "critical"

    def test_different_sessions_do_not_compare(self, client: TestClient):
        link = create_link(client)

        visit(client, link["link_code"], "81.2.69.142", session_id="sess-1")
        visit(client, link["link_code"], "24.48.0.1", session_id="sess-2")

        assert client.get(f"/api/v1/tracking/links/{link['id']}/anomalies", headers=ALICE).json() == []

    def test_no_alert_when_disabled(self, client: TestClient):
        link = create_link(client, alert_on_suspicious=False)

        visit(client, link["link_code"], "185.220.101.1")

        assert client.get("/api/v1/alerts", headers=ALICE).json() == []
        logs = client.get(f"/api/v1/tracking/links/{link['id']}/logs", headers=ALICE).json()
        assert logs[0]["is_suspicious"] is True

    def test_collected_data_is_owner_only(self, client: TestClient):
        link = create_link(client)
        visit(client, link["link_code"], "81.2.69.142")

        for path in ("logs", "sessions", "anomalies", "analytics"):
            assert client.get(f"/api/v1/tracking/links/{link['id']}/{path}", headers=BOB).status_code == 404

    def test_analytics(self, client: TestClient):
        link = create_link(client)

        visit(client, link["link_code"], "81.2.69.142", session_id="s1")
        visit(client, link["link_code"], "24.48.0.1", session_id="s2")
        visit(client, link["link_code"], "185.220.101.1", session_id="s3")

        response = client.get(f"/api/v1/tracking/links/{link['id']}/analytics", headers=ALICE)
        assert response.status_code == 200

        data = response.json()
        assert data["total_visits"] == 3
        assert data["unique_visitors"] == 3
        assert data["suspicious_visits"] == 1
        assert {c["country"] for c in data["top_countries"]} == {"United Kingdom", "Canada", "Germany"}
        assert data["threat_level_distribution"] == {"low": 2, "high": 1}
        assert data["anomaly_types"] == {"tor_usage": 1, "vpn_usage": 1, "datacenter_ip": 1}
        assert len(data["timeline"]) == 1
        assert data["timeline"][0]["visits"] == 3
        assert data["timeline"][0]["suspicious"] == 1
        assert len(data["geographic_data"]) == 3

    def test_empty_analytics(self, client: TestClient):
        link = create_link(client)

        data = client.get(f"/api/v1/tracking/links/{link['id']}/analytics", headers=ALICE).json()

        assert data["total_visits"] == 0
        assert data["timeline"] == []


class TestDeleteLink:
    def test_delete_removes_everything(self, client: TestClient, db_session):
        link = create_link(client)
        visit(client, link["link_code"], "185.220.101.1")

        assert client.delete(f"/api/v1/tracking/links/{link['id']}", headers=BOB).status_code == 404
        assert client.delete(f"/api/v1/tracking/links/{link['id']}", headers=ALICE).status_code == 204

        assert db_session.query(VisitorLog).count() == 0
        assert db_session.query(VisitorSession).count() == 0
        assert db_session.query(AnomalyDetection).count() == 0
        assert visit(client, link["link_code"], "81.2.69.142").status_code == 404
