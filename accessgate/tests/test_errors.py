"""
Tests for the error family and its JSON rendering.
"""

from fastapi import FastAPI
from fastapi.testclient import TestClient

from accessgate.entitlements.errors import EntitlementDeniedError, UsageLimitExceededError
from accessgate.platform.errors import (
    AppError,
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    register_error_handlers,
)


class TestAppError:

    def test_status_classes(self):
        assert AuthenticationError().http_status == 401
        assert PermissionDeniedError().http_status == 403
        assert NotFoundError().http_status == 404
        assert ConflictError().http_status == 409
        assert AppError().http_status == 500

    def test_default_message(self):
        assert NotFoundError().message == "Resource not found"

    def test_to_dict(self):
        error = PermissionDeniedError("Tenant access required", details={"required": "tenant_access"})
        assert error.to_dict("c-1") == {
            "success": False,
            "error": {
                "code": "FORBIDDEN",
                "message": "Tenant access required",
                "details": {"required": "tenant_access"},
                "correlation_id": "c-1",
            },
        }

    def test_to_dict_omits_empty_details(self):
        assert "details" not in NotFoundError().to_dict()["error"]


class TestEntitlementErrors:

    def test_entitlement_denied_is_forbidden(self):
        error = EntitlementDeniedError("nope", reason="feature_not_in_plan", feature="leads")
        assert isinstance(error, PermissionDeniedError)
        assert error.error_code == "ENTITLEMENT_DENIED"
        assert error.details["reason"] == "feature_not_in_plan"
        assert error.details["feature"] == "leads"

    def test_usage_limit_message(self):
        error = UsageLimitExceededError("leads", "max_leads", 2, 2)
        assert error.message == "You have reached your leads limit (2). Please upgrade your plan for more."
        assert error.error_code == "USAGE_LIMIT_EXCEEDED"
        assert error.http_status == 403

    def test_usage_limit_multiword_key(self):
        error = UsageLimitExceededError("campaigns", "max_campaigns_month", 5, 7)
        assert "your campaigns month limit (5)" in error.message


class TestErrorHandler:

    def _client(self):
        app = FastAPI()
        register_error_handlers(app)

        @app.get("/denied")
        def denied():
            raise PermissionDeniedError("Access denied to this tenant")

        @app.get("/hidden")
        def hidden():
            raise NotFoundError("Tenant not found")

        return TestClient(app)

    def test_renders_structured_body(self):
        response = self._client().get("/denied", headers={"X-Correlation-ID": "corr-42"})

        assert response.status_code == 403
        assert response.headers["X-Correlation-ID"] == "corr-42"
        assert response.json() == {
            "success": False,
            "error": {
                "code": "FORBIDDEN",
                "message": "Access denied to this tenant",
                "correlation_id": "corr-42",
            },
        }

    def test_generates_correlation_id(self):
        response = self._client().get("/hidden")

        assert response.status_code == 404
        assert response.json()["error"]["correlation_id"] == response.headers["X-Correlation-ID"]
