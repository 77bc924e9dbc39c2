"""
Tests for the TLV REST API endpoints.
"""

import pytest
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from tlv_engine.api.server import create_app
from tlv_engine.core.config import TlvEngineConfig

APPLICATION_CRYPTOGRAM = "9F2608B2E8B5C71A4BC320"


class TestParseEndpoint:
    """Tests for POST /api/tlv/parse."""

    def test_parse_without_validation(self, client):
        response = client.post("/api/tlv/parse", json={"data": APPLICATION_CRYPTOGRAM})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["fieldType"] == "emv"
        assert body["totalTags"] == 1
        assert body["totalLength"] == 11
        assert body["tags"] == [
            {
                "tag": "9F26",
                "name": "Application Cryptogram",
                "description": "Used to approve offline transactions",
                "length": 8,
                "rawValue": "B2E8B5C71A4BC320",
                "parsedValue": "B2E8B5C71A4BC320",
            }
        ]
        assert "validation" not in body

    def test_parse_with_valid_tags(self, client, financial_hex):
        response = client.post(
            "/api/tlv/parse",
            json={"data": financial_hex, "requestType": "financial", "validateTags": True},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["totalTags"] == 10
        assert body["validation"] == {"isValid": True, "requestType": "financial"}

    def test_parse_infers_request_type(self, client, financial_hex):
        response = client.post(
            "/api/tlv/parse",
            json={"data": financial_hex, "processingCode": "000000", "validateTags": True},
        )

        assert response.json()["validation"]["requestType"] == "financial"

    def test_parse_with_missing_tags(self, client):
        response = client.post(
            "/api/tlv/parse",
            json={"data": APPLICATION_CRYPTOGRAM, "requestType": "financial", "validateTags": True},
        )

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["error"].startswith("Validation failed: Missing mandatory tags")
        assert len(body["validation"]["missingMandatoryTags"]) == 9
        assert body["tags"][0]["tag"] == "9F26"

    def test_parse_unknown_type_skips_validation(self, client):
        response = client.post(
            "/api/tlv/parse",
            json={"data": "DF0201FF", "processingCode": "880000", "validateTags": True},
        )

        assert response.status_code == 200
        assert "validation" not in response.json()

    def test_parse_field48(self, client):
        response = client.post(
            "/api/tlv/parse", json={"data": "9C0100", "field": "field48"}
        )

        body = response.json()
        assert body["fieldType"] == "field48"
        assert body["tags"][0]["name"] == "Transaction Type"
        assert body["tags"][0]["description"] == "Unknown tag"

    def test_parse_malformed_hex(self, client):
        response = client.post("/api/tlv/parse", json={"data": "9F260"})

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "error": "Invalid hex data length (must be even): 5 characters",
        }

    def test_parse_truncated_value(self, client):
        response = client.post("/api/tlv/parse", json={"data": "9F2608B2E8"})

        assert response.status_code == 400
        assert "Insufficient data for tag 9F26" in response.json()["error"]

    def test_parse_unknown_request_type(self, client):
        response = client.post(
            "/api/tlv/parse",
            json={"data": APPLICATION_CRYPTOGRAM, "requestType": "refund", "validateTags": True},
        )

        assert response.status_code == 400
        assert response.json()["errorCode"] == "UNKNOWN_REQUEST_TYPE"

    def test_parse_missing_data(self, client):
        response = client.post("/api/tlv/parse", json={"data": ""})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["errorCode"] == "REQUEST_VALIDATION_ERROR"

    def test_parse_data_too_long(self):
        client = TestClient(create_app(TlvEngineConfig(max_data_length=10)))

        response = client.post("/api/tlv/parse", json={"data": APPLICATION_CRYPTOGRAM})

        assert response.status_code == 413
        assert response.json()["success"] is False


class TestValidateEndpoint:
    """Tests for POST /api/tlv/validate."""

    def test_validate_missing_tags(self, client):
        response = client.post(
            "/api/tlv/validate",
            json={"tags": ["9F26", "9A", "9C"], "requestType": "financial"},
        )

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert [t["tag"] for t in body["validation"]["missingMandatoryTags"]] == [
            "5F2A", "82", "95", "9F02", "9F27", "9F36", "9F37",
        ]

    def test_validate_empty_settlement(self, client):
        response = client.post(
            "/api/tlv/validate", json={"tags": [], "requestType": "settlement"}
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "fieldType": "emv",
            "validation": {"isValid": True, "requestType": "settlement"},
        }

    def test_validate_reports_invalid_and_extra(self, client):
        response = client.post(
            "/api/tlv/validate",
            json={"tags": ["9A", "9C", "71", "DF99"], "requestType": "batch_upload"},
        )

        validation = response.json()["validation"]
        assert validation["invalidTags"] == ["DF99"]
        assert validation["extraTags"] == ["71"]

    def test_validate_requires_request_type(self, client):
        response = client.post("/api/tlv/validate", json={"tags": ["9A"]})

        assert response.status_code == 400


class TestLookupEndpoints:
    """Tests for requirement and tag listings."""

    def test_requirements(self, client):
        response = client.get("/api/tlv/requirements/financial")

        assert response.status_code == 200
        body = response.json()
        assert body["requestType"] == "financial"
        assert body["fieldType"] == "emv"
        assert len(body["mandatoryTags"]) == 10
        assert len(body["optionalTags"]) == 12
        assert body["mandatoryTags"][0]["required"] is True

    def test_requirements_field48(self, client):
        response = client.get("/api/tlv/requirements/pin_change", params={"field": "field48"})

        assert [t["tag"] for t in response.json()["mandatoryTags"]] == ["002"]

    @pytest.mark.parametrize("request_type", ["unknown", "refund"])
    def test_requirements_invalid_type(self, client, request_type):
        response = client.get(f"/api/tlv/requirements/{request_type}")

        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid request type. Valid types: authorization")

    def test_tags(self, client):
        emv = client.get("/api/tlv/tags").json()
        field48 = client.get("/api/tlv/tags", params={"field": "field48"}).json()

        assert emv["totalTags"] == 33
        assert field48["totalTags"] == 8
        assert field48["tags"][0]["tag"] == "001"

    def test_tags_invalid_field(self, client):
        response = client.get("/api/tlv/tags", params={"field": "field62"})

        assert response.status_code == 400

    def test_request_types(self, client):
        body = client.get("/api/tlv/request-types").json()

        assert len(body["requestTypes"]) == 8
        financial = next(rt for rt in body["requestTypes"] if rt["type"] == "financial")
        assert len(financial["emvRequirements"]["mandatoryTags"]) == 10
        assert financial["field48Requirements"]["mandatoryTags"] == []


class TestServiceEndpoints:
    """Tests for health, banner, metrics and error handling."""

    def test_health(self, client):
        body = client.get("/api/tlv/health").json()

        assert body["success"] is True
        assert body["message"] == "TLV Parser API is running"
        assert "timestamp" in body

    def test_root_banner(self, client):
        body = client.get("/").json()

        assert body["message"] == "TLV Parser API with Validation"
        assert body["endpoints"]["parse"].startswith("POST /api/tlv/parse")

    def test_metrics(self, client):
        client.post("/api/tlv/parse", json={"data": APPLICATION_CRYPTOGRAM})

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "tlv_decode_requests_total" in response.text

    def test_unknown_endpoint(self, client):
        response = client.get("/api/tlv/nope")

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Endpoint not found"}

    def test_response_headers(self, client):
        response = client.get("/api/tlv/health", headers={"X-Correlation-ID": "abc-123"})

        assert response.headers["X-Correlation-ID"] == "abc-123"
        assert response.headers["X-Content-Type-Options"] == "nosniff"

    def test_custom_prefix(self):
        client = TestClient(create_app(TlvEngineConfig(api_prefix="/v2/tlv")))

        assert client.get("/v2/tlv/health").status_code == 200

    def test_request_metrics_use_full_route_template(self):
        client = TestClient(create_app(TlvEngineConfig(api_prefix="/v3/tlv")))
        labels = {
            "method": "GET",
            "route": "/v3/tlv/requirements/{request_type}",
            "status_code": "200",
        }
        before = REGISTRY.get_sample_value("tlv_http_requests_total", labels) or 0

        client.get("/v3/tlv/requirements/financial")
        client.get("/v3/tlv/requirements/reversal")

        assert REGISTRY.get_sample_value("tlv_http_requests_total", labels) == before + 2
