from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from puzzle_tracker.config import settings


@pytest.mark.parametrize(
    ("claims", "path"),
    [
        ({"role": "health_system", "org_id": "hs1"}, "/api/v1/views/health-system/hs2"),
        ({"role": "health_system", "org_id": "hs1"}, "/api/v1/facilities/f2"),
        ({"role": "health_system", "org_id": "hs1"}, "/api/v1/patients/p2"),
        ({"role": "snf_chain", "chain_id": "c1"}, "/api/v1/views/snf-chain/c2"),
        ({"role": "snf_chain", "chain_id": "c1"}, "/api/v1/views/snf-facility/f3"),
        ({"role": "snf_facility", "facility_id": "f1"}, "/api/v1/facilities/f2/patients"),
        ({"role": "snf_facility", "facility_id": "f1"}, "/api/v1/views/central"),
        ({"role": "snf_facility", "facility_id": "f1"}, "/api/v1/patients"),
        ({"role": "snf_chain", "chain_id": "c1"}, "/api/v1/organizations/hs1/facilities"),
    ],
)
def test_requests_outside_claim_are_forbidden(client, auth_headers, claims, path):
    claims = dict(claims)
    role = claims.pop("role")

    response = client.get(path, headers=auth_headers(role, **claims))

    assert response.status_code == 403
    assert response.json()["error"]["type"] == "forbidden"


def test_forbidden_write_leaves_patient_untouched(client, auth_headers):
    response = client.post(
        "/api/v1/patients/p6/alerts/sync",
        headers=auth_headers("snf_facility", facility_id="f1"),
    )

    assert response.status_code == 403
    assert client.get("/api/v1/patients/p6", headers=auth_headers()).json()["version"] == 0


def test_unknown_resource_is_not_found_even_outside_scope(client, auth_headers):
    response = client.get(
        "/api/v1/facilities/f9",
        headers=auth_headers("snf_facility", facility_id="f1"),
    )

    assert response.status_code == 404


def test_directory_is_narrowed_to_claim(client, auth_headers):
    headers = auth_headers("health_system", org_id="hs2")

    orgs = client.get("/api/v1/organizations", headers=headers).json()
    chains = client.get("/api/v1/chains", headers=headers).json()

    assert [o["id"] for o in orgs] == ["hs2"]
    assert chains == []


def test_scoped_rth_covers_only_visible_facilities(client, auth_headers):
    scoped = client.get(
        "/api/v1/metrics/rth",
        headers=auth_headers("snf_facility", facility_id="f1"),
    ).json()

    assert scoped["rth30"] == pytest.approx(3 / 7 * 0.3 + 0.07)


def test_missing_token_is_rejected(client):
    response = client.get("/api/v1/views/central")

    assert response.status_code in (401, 403)


@pytest.mark.parametrize(
    "claims",
    [
        {"role": "pharmacist"},
        {"role": "snf_chain"},
        {"role": "health_system", "chain_id": "c1"},
        {"role": "central_team", "token_type": "refresh"},
    ],
)
def test_invalid_claims_are_unauthorized(client, auth_headers, claims):
    claims = dict(claims)
    role = claims.pop("role")

    response = client.get("/api/v1/organizations", headers=auth_headers(role, **claims))

    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_expired_or_foreign_tokens_are_unauthorized(client):
    expired = jwt.encode(
        {
            "sub": "tester",
            "role": "central_team",
            "exp": datetime.now(timezone.utc) - timedelta(minutes=5),
        },
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )
    foreign = jwt.encode({"sub": "tester", "role": "central_team"}, "other-secret")

    for token in (expired, foreign):
        response = client.get(
            "/api/v1/organizations",
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 401
