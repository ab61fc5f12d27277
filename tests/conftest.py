"""Shared fixtures for autoPim tests.

All HTTP is faked at the requests.Session boundary: the ArmAPIClient is real,
its session is a MagicMock returning real requests.Response objects.
"""

import json
from unittest.mock import MagicMock

import pytest
import requests

from autoPim.arm.api_client import ArmAPIClient


SUB_A_ID = "ffffffff-0000-0000-0000-00000000000a"
SUB_B_ID = "ffffffff-0000-0000-0000-00000000000b"
SUB_C_ID = "ffffffff-0000-0000-0000-00000000000c"

TEST_TOKEN = "eyJ0eXAiOiJKV1QiLCJhbGciOiJub25lIn0.test-token-value"


def make_response(status_code: int, body=None, text: str = None) -> requests.Response:
    """Build a real requests.Response with a JSON (or raw text) body."""
    response = requests.Response()
    response.status_code = status_code
    if text is None:
        text = json.dumps(body) if body is not None else ''
    response._content = text.encode('utf-8')
    response.encoding = 'utf-8'
    return response


def eligibility_element(display_name: str, subscription_id: str, principal_id: str = "p1",
                        role_definition_id: str = "r1", schedule_id: str = "e1") -> dict:
    """One element of a roleEligibilityScheduleInstances 'value' array."""
    scope_id = f"/subscriptions/{subscription_id}"
    return {
        "id": f"{scope_id}/providers/Microsoft.Authorization/roleEligibilityScheduleInstances/{schedule_id}",
        "properties": {
            "principalId": principal_id,
            "roleDefinitionId": f"{scope_id}/providers/Microsoft.Authorization/roleDefinitions/{role_definition_id}",
            "roleEligibilityScheduleId": schedule_id,
            "scope": scope_id,
            "status": "Provisioned",
            "expandedProperties": {
                "principal": {"id": principal_id, "type": "User"},
                "scope": {
                    "id": scope_id,
                    "displayName": display_name,
                    "type": "subscription"
                }
            }
        }
    }


@pytest.fixture
def make_client():
    """Factory for an ArmAPIClient whose session is a MagicMock."""
    def _make(get_response=None, put_responses=None, get_side_effect=None, put_side_effect=None):
        client = ArmAPIClient(TEST_TOKEN)
        client.session = MagicMock()
        if get_side_effect is not None:
            client.session.get.side_effect = get_side_effect
        else:
            client.session.get.return_value = get_response
        if put_side_effect is not None:
            client.session.put.side_effect = put_side_effect
        elif put_responses is not None:
            client.session.put.side_effect = list(put_responses)
        return client
    return _make


@pytest.fixture
def listing():
    """A listing with eligibilities on Sub-A, Sub-B and an unrelated subscription."""
    return {
        "value": [
            eligibility_element("Sub-A", SUB_A_ID, schedule_id="e1"),
            eligibility_element("Sub-B", SUB_B_ID, schedule_id="e2"),
            eligibility_element("Other", SUB_C_ID, schedule_id="e3"),
        ]
    }
