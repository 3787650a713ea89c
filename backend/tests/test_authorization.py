"""
Authorization tests.

Verifies:
- Unauthenticated requests return 401
- Portal (client role) users are denied business endpoints (403)
- Regular users are denied admin endpoints (403)
- Public endpoints answer without a token
"""

import pytest


# =============================================================================
# UNAUTHENTICATED ACCESS: 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/me"),
            ("POST", "/api/auth/logout"),
            ("GET", "/api/users"),
            ("GET", "/api/audit-logs"),
            ("GET", "/api/clients"),
            ("POST", "/api/clients"),
            ("GET", "/api/quotes"),
            ("POST", "/api/quotes/1/convert"),
            ("GET", "/api/invoices"),
            ("GET", "/api/expenses"),
            ("GET", "/api/accounts"),
            ("GET", "/api/journal-entries"),
            ("GET", "/api/reports/balance-sheet"),
            ("GET", "/api/reports/income-statement"),
            ("GET", "/api/files"),
            ("POST", "/api/files/upload"),
            ("GET", "/api/settings"),
            ("GET", "/api/white-label"),
            ("POST", "/api/client-portal/invite"),
            ("GET", "/api/client-portal/me"),
            ("GET", "/api/client-portal/projects"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/clients", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401

    def test_logged_out_token_rejected(self, client, staff_headers):
        assert client.post("/api/auth/logout", headers=staff_headers).status_code == 200
        assert client.get("/api/auth/me", headers=staff_headers).status_code == 401


# =============================================================================
# PORTAL USERS DENIED BUSINESS OPERATIONS: 403
# =============================================================================


class TestPortalDenied:
    """Client-role users only reach the portal, files and their branding."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/clients"),
            ("GET", "/api/quotes"),
            ("POST", "/api/quotes"),
            ("GET", "/api/invoices"),
            ("GET", "/api/expenses"),
            ("GET", "/api/accounts"),
            ("POST", "/api/journal-entries"),
            ("GET", "/api/reports/balance-sheet"),
            ("GET", "/api/settings"),
            ("POST", "/api/client-portal/invite"),
            ("POST", "/api/client-portal/projects"),
            ("POST", "/api/client-portal/appointments"),
            ("GET", "/api/users"),
        ],
    )
    def test_forbidden(self, client, portal_headers, method, path):
        resp = getattr(client, method.lower())(path, json={}, headers=portal_headers)
        assert resp.status_code == 403, f"{method} {path} returned {resp.status_code}"

    def test_portal_reaches_own_overview(self, client, portal_headers):
        assert client.get("/api/client-portal/me", headers=portal_headers).status_code == 200


# =============================================================================
# REGULAR USERS DENIED ADMIN OPERATIONS: 403
# =============================================================================


class TestStaffDeniedAdmin:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/users"),
            ("POST", "/api/users"),
            ("GET", "/api/audit-logs"),
            ("POST", "/api/settings"),
            ("GET", "/api/white-label"),
            ("PUT", "/api/white-label/deactivate-all"),
        ],
    )
    def test_forbidden(self, client, staff_headers, method, path):
        resp = getattr(client, method.lower())(path, json={}, headers=staff_headers)
        assert resp.status_code == 403

    def test_staff_reaches_business_endpoints(self, client, staff_headers):
        for path in ("/api/clients", "/api/quotes", "/api/invoices", "/api/expenses",
                     "/api/accounts", "/api/journal-entries", "/api/files", "/api/settings"):
            assert client.get(path, headers=staff_headers).status_code == 200, path


# =============================================================================
# PUBLIC ENDPOINTS: NO AUTH REQUIRED
# =============================================================================


class TestPublicEndpoints:
    def test_health(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json["status"] == "healthy"
        assert resp.json["checks"]["database"]["status"] == "healthy"
        assert resp.json["providers"] == {"identity": "local", "storage": "memory", "email": "log"}

    def test_active_white_label(self, client, db_session):
        assert client.get("/api/white-label/active").status_code == 200

    def test_verify_token_unknown(self, client, db_session):
        assert client.get("/api/client-portal/verify-token/inv_nothing").status_code == 404
