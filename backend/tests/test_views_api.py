import pytest


def _ids(rows):
    return [r["id"] for r in rows]


def test_health_system_view(client, auth_headers):
    response = client.get(
        "/api/v1/views/health-system/hs1",
        headers=auth_headers("health_system", org_id="hs1"),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["health_system"]["name"] == "Corewell Health East"
    assert body["selected_facility"]["facility"]["id"] == "f1"
    assert _ids(body["patients_at_facility"]) == ["p5", "p9", "p17", "p21"]
    assert _ids(body["home_cohort"]) == ["p1", "p7", "p13", "p19", "p25"]
    assert body["kpis"]["census_in_snf"] == 8
    assert body["kpis"]["high_risk"] == 5
    assert body["kpis"]["open_escalations"] == 8
    assert body["kpis"]["rth"]["rth30"] == pytest.approx(5 / 13 * 0.3 + 0.07)


def test_health_system_view_search_and_mask(client, auth_headers):
    response = client.get(
        "/api/v1/views/health-system/hs1?search=JR&phi_mask=true",
        headers=auth_headers(),
    )

    body = response.json()
    assert _ids(body["home_cohort"]) == ["p25"]
    assert _ids(body["patients_at_facility"]) == ["p21"]
    assert body["home_cohort"][0]["name"] == "•••"


def test_health_system_view_with_facility_outside_org(client, auth_headers):
    body = client.get(
        "/api/v1/views/health-system/hs1?facility_id=f4",
        headers=auth_headers(),
    ).json()

    assert body["selected_facility"] is None
    assert body["patients_at_facility"] == []


def test_snf_chain_view(client, auth_headers):
    response = client.get(
        "/api/v1/views/snf-chain/c1",
        headers=auth_headers("snf_chain", chain_id="c1"),
    )

    body = response.json()
    assert [f["facility"]["id"] for f in body["facilities"]] == ["f1", "f2"]
    assert _ids(body["patients"])[:3] == ["p17", "p6", "p5"]
    assert _ids(body["patients"])[-5:] == ["p22", "p10", "p25", "p13", "p1"]
    assert body["kpis"] == {"facilities": 2, "open_escalations": 11, "avg_ack_minutes": 34}


def test_snf_facility_view(client, auth_headers):
    response = client.get(
        "/api/v1/views/snf-facility/f1",
        headers=auth_headers("snf_facility", facility_id="f1"),
    )

    body = response.json()
    assert _ids(body["admits"]) == ["p5", "p9", "p17"]
    assert _ids(body["discharges"]) == ["p1", "p13", "p25"]
    assert len(body["roster"]) == 7
    assert [e["patient"]["id"] for e in body["escalations"]] == ["p1", "p5", "p17", "p21", "p21"]
    assert body["kpis"] == {
        "census": 4,
        "home_cohort": 3,
        "open_escalations": 5,
        "engagement_score": 85,
    }


def test_central_view(client, auth_headers):
    body = client.get("/api/v1/views/central", headers=auth_headers()).json()

    assert list(body["triage"]) == ["High", "Medium", "Low"]
    assert [len(rows) for rows in body["triage"].values()] == [10, 11, 5]
    assert len(body["report"]) == 4
    assert body["kpis"]["patients_in_program"] == 26
    assert body["kpis"]["open_alerts"] == 16
    assert body["kpis"]["high_risk"] == 10
    assert body["kpis"]["hospice"] == 1


def test_unknown_chain_is_not_found(client, auth_headers):
    response = client.get("/api/v1/views/snf-chain/c9", headers=auth_headers())

    assert response.status_code == 404
    assert response.json()["error"]["message"] == "Chain not found"
