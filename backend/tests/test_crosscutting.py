import logging

import pytest

from puzzle_tracker.logging import RequestContextFilter, request_id_var, tenant_var
from puzzle_tracker.services.access import TenantClaim, TenantRole
from puzzle_tracker.services.errors import (
    NotFoundError,
    ScopeForbiddenError,
    VersionConflictError,
)


def _record() -> logging.LogRecord:
    return logging.LogRecord("puzzle_tracker.test", logging.INFO, __file__, 1, "msg", (), None)


def test_request_context_filter_attaches_request_and_tenant():
    request_token = request_id_var.set("req-9")
    tenant_token = tenant_var.set("snf_facility:f1")
    try:
        record = _record()
        RequestContextFilter().filter(record)
    finally:
        request_id_var.reset(request_token)
        tenant_var.reset(tenant_token)

    assert record.request_id == "req-9"
    assert record.tenant == "snf_facility:f1"


def test_request_context_filter_defaults_to_dash():
    record = _record()
    RequestContextFilter().filter(record)

    assert record.request_id == "-"
    assert record.tenant == "-"


def test_scope_denials_are_logged_without_phi(resolver_for, caplog):
    resolver = resolver_for("snf_facility", facility_id="f1")

    with caplog.at_level(logging.WARNING, logger="puzzle_tracker.views"):
        with pytest.raises(ScopeForbiddenError):
            resolver.get_patient("p2")

    assert "subject=tester" in caplog.text
    assert "snf_facility:f1" in caplog.text
    assert "David Chen" not in caplog.text
    assert "MRN-" not in caplog.text


@pytest.mark.parametrize(
    ("role", "scope"),
    [
        (TenantRole.health_system, {}),
        (TenantRole.snf_chain, {"org_id": "hs1"}),
        (TenantRole.snf_facility, {"chain_id": "c1"}),
    ],
)
def test_scoped_claims_require_their_scope_id(role, scope):
    with pytest.raises(ValueError):
        TenantClaim(subject="tester", role=role, **scope)


def test_claim_scope_labels():
    assert TenantClaim.central().scope_label == "central_team"
    assert TenantClaim("s", TenantRole.snf_chain, chain_id="c1").scope_label == "snf_chain:c1"


def test_error_messages():
    assert str(NotFoundError("facility", "f9")) == "Facility not found"
    conflict = VersionConflictError("p1", 2, 3)
    assert (conflict.expected, conflict.actual) == (2, 3)
