import asyncio

import pytest
from fastapi.testclient import TestClient

from diagnostics_app.exceptions import GeoLookupError
from diagnostics_app.models.analysis import AnalysisSession
from diagnostics_app.services.analysis_service import (
    AnalysisService,
    batch_statistics,
    detect_patterns,
    normalize_ips,
)

ALICE = {"X-User-Id": "alice"}
BOB = {"X-User-Id": "bob"}


def analyze(client, ips, headers=ALICE, **extra):
    return client.post("/api/v1/analysis", json={"ips": ips, **extra}, headers=headers)


class TestAnalysisEndpoints:
    """Test batch analysis sessions through the API"""

    def test_requires_identity(self, client: TestClient):
        response = client.post("/api/v1/analysis", json={"ips": ["8.8.8.8"]})
        assert response.status_code == 401

    def test_empty_list_is_rejected(self, client: TestClient):
        response = analyze(client, [])
        assert response.status_code == 422

    def test_blank_only_list_is_rejected(self, client: TestClient, db_session):
        response = analyze(client, [" ", ""])
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"
        assert db_session.query(AnalysisSession).count() == 0

    def test_analyze_batch(self, client: TestClient):
        response = analyze(client, ["81.2.69.142", "8.8.8.8", "185.220.101.1"], session_name="Firewall log")
        assert response.status_code == 201

        data = response.json()
        session = data["session"]
        assert session["session_name"] == "Firewall log"
        assert session["user_id"] == "alice"
        assert session["total_ips"] == 3
        assert session["high_risk_count"] == 1
        assert session["medium_risk_count"] == 1
        assert session["low_risk_count"] == 1

        results = {r["ip"]: r for r in data["results"]}
        assert results["81.2.69.142"]["threat"] == "low"
        assert results["81.2.69.142"]["ip_type"] == "residential"
        assert results["8.8.8.8"]["threat"] == "medium"
        assert results["8.8.8.8"]["ip_type"] == "datacenter"
        assert results["185.220.101.1"]["threat"] == "high"
        assert results["185.220.101.1"]["blacklist"]["is_blacklisted"] is True
        assert results["185.220.101.1"]["vpn_tor"]["is_tor"] is True
        assert results["185.220.101.1"]["suspicious_pattern"] is True
        assert len(results["8.8.8.8"]["reputation_links"]) == 4
        assert all(r["is_duplicate"] is False for r in data["results"])

        stats = data["statistics"]
        assert stats["total"] == 3
        assert stats["by_threat_level"] == {"low": 1, "medium": 1, "high": 1}
        assert stats["blacklisted"] == 1
        assert stats["vpn_tor"] == 1
        assert stats["suspicious"] == 2

    def test_default_session_name(self, client: TestClient):
        data = analyze(client, ["8.8.8.8"]).json()
        assert data["session"]["session_name"].startswith("IP analysis - ")

    def test_blank_and_repeated_ips_are_dropped(self, client: TestClient):
        data = analyze(client, [" 8.8.8.8 ", "", "8.8.8.8", "1.1.1.1"]).json()
        assert [r["ip"] for r in data["results"]] == ["8.8.8.8", "1.1.1.1"]

    def test_unknown_ip_is_unknown_threat(self, client: TestClient):
        data = analyze(client, ["10.0.0.1"]).json()

        result = data["results"][0]
        assert result["threat"] == "unknown"
        assert result["ip_type"] == "unknown"
        assert data["session"]["total_ips"] == 1
        assert data["session"]["low_risk_count"] == 0

    def test_repeat_ip_is_flagged_as_duplicate(self, client: TestClient):
        analyze(client, ["8.8.8.8"])

        data = analyze(client, ["8.8.8.8", "1.1.1.1"]).json()
        results = {r["ip"]: r for r in data["results"]}
        assert results["8.8.8.8"]["is_duplicate"] is True
        assert results["8.8.8.8"]["last_seen"] is not None
        assert results["1.1.1.1"]["is_duplicate"] is False

        # Another user's history does not count
        other = analyze(client, ["8.8.8.8"], headers=BOB).json()
        assert other["results"][0]["is_duplicate"] is False

    def test_high_risk_ip_raises_alert_and_blacklists(self, client: TestClient):
        analyze(client, ["185.220.101.1", "81.2.69.142"])

        alerts = client.get("/api/v1/alerts", headers=ALICE).json()
        assert len(alerts) == 1
        assert alerts[0]["alert_type"] == "suspicious_ip"
        assert alerts[0]["severity"] == "critical"
        assert alerts[0]["related_data"]["ip_address"] == "185.220.101.1"

        check = client.get("/api/v1/alerts/blacklist/check/185.220.101.1", headers=ALICE).json()
        assert check["is_blacklisted"] is True
        assert check["entry"]["auto_added"] is True

        # Nothing leaks to other users
        assert client.get("/api/v1/alerts", headers=BOB).json() == []

    def test_pattern_match_raises_warning(self, client: TestClient):
        client.post("/api/v1/alerts/patterns", headers=ALICE, json={
            "pattern_type": "country", "pattern_value": "AU", "description": "Watch Australia",
        })

        analyze(client, ["1.1.1.1"])

        alerts = client.get("/api/v1/alerts", headers=ALICE).json()
        assert len(alerts) == 1
        assert alerts[0]["severity"] == "warning"
        assert alerts[0]["related_data"]["matched_patterns"] == ["Watch Australia"]

    def test_sessions_are_shared_but_filterable(self, client: TestClient):
        analyze(client, ["8.8.8.8"])
        analyze(client, ["1.1.1.1"], headers=BOB)

        everyone = client.get("/api/v1/analysis/sessions", headers=ALICE).json()
        assert len(everyone) == 2

        mine = client.get("/api/v1/analysis/sessions?mine=true", headers=ALICE).json()
        assert [s["user_id"] for s in mine] == ["alice"]

    def test_session_results(self, client: TestClient):
        session_id = analyze(client, ["8.8.8.8", "39.156.66.10"]).json()["session"]["id"]

        response = client.get(f"/api/v1/analysis/sessions/{session_id}/results", headers=BOB)
        assert response.status_code == 200

        results = {r["ip_address"]: r for r in response.json()}
        assert results["39.156.66.10"]["country_code"] == "CN"
        assert results["39.156.66.10"]["is_mobile"] is True
        assert results["39.156.66.10"]["threat_level"] == "medium"
        assert results["8.8.8.8"]["analysis_data"]["city"] == "Ashburn"

    def test_results_for_missing_session(self, client: TestClient):
        response = client.get("/api/v1/analysis/sessions/missing/results", headers=ALICE)
        assert response.status_code == 404

    def test_only_creator_can_delete(self, client: TestClient):
        session_id = analyze(client, ["8.8.8.8"]).json()["session"]["id"]

        assert client.delete(f"/api/v1/analysis/sessions/{session_id}", headers=BOB).status_code == 403
        assert client.delete(f"/api/v1/analysis/sessions/{session_id}", headers=ALICE).status_code == 204
        assert client.delete(f"/api/v1/analysis/sessions/{session_id}", headers=ALICE).status_code == 404
        assert client.get(f"/api/v1/analysis/sessions/{session_id}/results", headers=ALICE).status_code == 404


class TestAnalysisHelpers:
    """Test pure batch helpers"""

    def result(self, ip, country="Germany", isp="ISP A", threat="low"):
        return {
            "ip": ip,
            "record": {"country": country, "isp": isp},
            "threat": threat,
            "ip_type": "residential",
            "blacklist": {"is_blacklisted": False},
            "vpn_tor": {"is_vpn": False, "is_tor": False},
        }

    def test_normalize_ips(self):
        assert normalize_ips([" a ", "b", "a", "", None], limit=50) == ["a", "b"]
        assert normalize_ips([str(n) for n in range(60)], limit=50) == [str(n) for n in range(50)]

    def test_detect_patterns(self):
        results = [
            self.result("10.1.1.1"),
            self.result("10.1.1.2", isp="ISP B"),
            self.result("10.2.2.2", country="France"),
            self.result("not-an-ip", country=None),
        ]

        patterns = detect_patterns(results)

        assert patterns["suspicious_ranges"] == ["10.1.1.0/24"]
        assert patterns["common_isps"][0] == "ISP A"
        assert patterns["geographic_clusters"][0] == {
            "country": "Germany", "count": 2, "ips": ["10.1.1.1", "10.1.1.2"],
        }
        assert {"country": "Unknown", "count": 1, "ips": ["not-an-ip"]} in patterns["geographic_clusters"]

    def test_batch_statistics(self):
        stats = batch_statistics([self.result("1.2.3.4"), self.result("1.2.3.5", threat="unknown")])

        assert stats["total"] == 2
        assert stats["by_country"] == {"Germany": 2}
        assert stats["suspicious"] == 1


class TestAnalysisService:
    def test_lookup_failure_stores_nothing(self, db_session, alert_service):
        """Test that a failed geolocation leaves no half-written session"""

        class BrokenGeo:
            async def lookup(self, queries):
                raise GeoLookupError("timeout")

        service = AnalysisService(db_session, BrokenGeo(), alert_service)

        with pytest.raises(GeoLookupError):
            asyncio.run(service.analyze("alice", ["8.8.8.8"]))

        assert db_session.query(AnalysisSession).count() == 0
