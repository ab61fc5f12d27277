"""Tests for autoPim.arm.api_client.ArmAPIClient."""

from unittest.mock import MagicMock

import pytest
import requests

from autoPim.arm.api_client import ArmAPIClient, ELIGIBILITY_INSTANCES_URL
from autoPim.errors import ActivationTransportError, DiscoveryError

from conftest import TEST_TOKEN, make_response


class TestClientSetup:

    def test_session_carries_bearer_and_json_headers(self):
        client = ArmAPIClient(f"  {TEST_TOKEN}\n")
        assert client.session.headers["Authorization"] == f"Bearer {TEST_TOKEN}"
        assert client.session.headers["Content-Type"] == "application/json"

    def test_empty_token_is_rejected(self):
        with pytest.raises(ValueError):
            ArmAPIClient("   ")

    def test_proxy_disables_certificate_verification(self):
        client = ArmAPIClient(TEST_TOKEN, proxy="127.0.0.1:8080")
        assert client.session.proxies == {
            'http': 'http://127.0.0.1:8080',
            'https': 'http://127.0.0.1:8080'
        }
        assert client.session.verify is False

    def test_default_timeout_is_thirty_seconds(self):
        assert ArmAPIClient(TEST_TOKEN).timeout == 30


class TestListEligibilityInstances:

    def test_listing_url_is_exact(self):
        assert ELIGIBILITY_INSTANCES_URL == (
            "https://management.azure.com/providers/Microsoft.Authorization/"
            "roleEligibilityScheduleInstances?api-version=2020-10-01&$filter=asTarget()"
        )

    def test_returns_decoded_body(self, make_client):
        client = make_client(get_response=make_response(200, {"value": []}))
        assert client.list_role_eligibility_schedule_instances() == {"value": []}
        client.session.get.assert_called_once_with(ELIGIBILITY_INSTANCES_URL, timeout=30)

    @pytest.mark.parametrize("status", [401, 403, 404, 500])
    def test_non_success_status_raises(self, make_client, status):
        client = make_client(get_response=make_response(status, {"error": {"code": "X"}}))
        with pytest.raises(DiscoveryError) as exc_info:
            client.list_role_eligibility_schedule_instances()
        assert exc_info.value.status_code == status

    def test_malformed_json_raises(self, make_client):
        client = make_client(get_response=make_response(200, text="<html>not json</html>"))
        with pytest.raises(DiscoveryError, match="JSON"):
            client.list_role_eligibility_schedule_instances()

    def test_timeout_raises_discovery_error(self, make_client):
        client = make_client(get_side_effect=requests.exceptions.Timeout())
        with pytest.raises(DiscoveryError, match="timed out"):
            client.list_role_eligibility_schedule_instances()

    def test_connection_error_raises_discovery_error(self, make_client):
        client = make_client(get_side_effect=requests.exceptions.ConnectionError("refused"))
        with pytest.raises(DiscoveryError):
            client.list_role_eligibility_schedule_instances()


class TestCreateAssignmentRequest:

    def test_put_targets_subscription_and_request_id(self, make_client):
        client = make_client(put_responses=[make_response(201, {})])
        body = {"properties": {}}

        response = client.create_role_assignment_schedule_request("sub-guid", "req-guid", body)

        assert response.status_code == 201
        args, kwargs = client.session.put.call_args
        assert args[0] == (
            "https://management.azure.com/providers/Microsoft.Subscription/subscriptions/sub-guid"
            "/providers/Microsoft.Authorization/roleAssignmentScheduleRequests/req-guid"
            "?api-version=2020-10-01"
        )
        assert kwargs == {"json": body, "timeout": 30}

    def test_error_status_is_returned_not_raised(self, make_client):
        client = make_client(put_responses=[make_response(409, {"error": {"code": "RoleAssignmentExists"}})])
        response = client.create_role_assignment_schedule_request("s", "r", {})
        assert response.status_code == 409

    def test_transport_failure_raises(self, make_client):
        client = make_client(put_side_effect=requests.exceptions.ConnectionError("reset"))
        with pytest.raises(ActivationTransportError, match="ConnectionError"):
            client.create_role_assignment_schedule_request("s", "r", {})

    def test_timeout_raises(self):
        client = ArmAPIClient(TEST_TOKEN, timeout=5)
        client.session = MagicMock()
        client.session.put.side_effect = requests.exceptions.ReadTimeout()
        with pytest.raises(ActivationTransportError, match="5"):
            client.create_role_assignment_schedule_request("s", "r", {})
