"""Tests for autoPim.activation.models."""

import pytest

from autoPim.activation.models import (
    ActivationOutcome,
    ActivationRequest,
    OutcomeStatus,
    RoleEligibilityInstance,
)


def _instance(scope_id="/subscriptions/sub-guid/resourceGroups/rg"):
    return RoleEligibilityInstance(
        scope_id=scope_id,
        subscription_display_name="Sub-A",
        principal_id="p1",
        role_definition_id="r1",
        eligibility_schedule_id="e1",
    )


class TestSubscriptionId:

    @pytest.mark.parametrize("scope_id, expected", [
        ("/subscriptions/abc", "abc"),
        ("/subscriptions/abc/resourceGroups/rg", "abc"),
        ("/x/sub/y/z", "sub"),
    ])
    def test_third_path_segment(self, scope_id, expected):
        assert _instance(scope_id).subscription_id == expected

    @pytest.mark.parametrize("scope_id", ["", "/", "/subscriptions", "/subscriptions/"])
    def test_missing_segment_raises(self, scope_id):
        with pytest.raises(ValueError):
            _instance(scope_id).subscription_id


class TestActivationRequest:

    def test_body_shape(self):
        request = ActivationRequest.for_instance(_instance(), justification="ops", duration="PT4H")

        assert request.to_body() == {
            "properties": {
                "principalId": "p1",
                "roleDefinitionId": "r1",
                "requestType": "SelfActivate",
                "linkedRoleEligibilityScheduleId": "e1",
                "justification": "ops",
                "scheduleInfo": {
                    "expiration": {
                        "type": "AfterDuration",
                        "endDateTime": None,
                        "duration": "PT4H",
                    }
                },
            }
        }

    def test_default_duration_is_eight_hours(self):
        request = ActivationRequest.for_instance(_instance())
        assert request.to_body()["properties"]["scheduleInfo"]["expiration"]["duration"] == "PT8H"

    def test_each_request_gets_a_new_request_id(self):
        instance = _instance()
        ids = {ActivationRequest.for_instance(instance).request_id for _ in range(50)}
        assert len(ids) == 50

    def test_url_uses_subscription_and_request_id(self):
        request = ActivationRequest.for_instance(_instance())
        assert request.url() == (
            "https://management.azure.com/providers/Microsoft.Subscription/subscriptions/sub-guid"
            f"/providers/Microsoft.Authorization/roleAssignmentScheduleRequests/{request.request_id}"
            "?api-version=2020-10-01"
        )

    def test_for_instance_rejects_scope_without_subscription(self):
        with pytest.raises(ValueError):
            ActivationRequest.for_instance(_instance("/subscriptions"))


def test_only_failed_outcome_is_failed():
    instance = _instance()
    assert ActivationOutcome(OutcomeStatus.FAILED, instance).failed
    for status in (OutcomeStatus.ACTIVATED, OutcomeStatus.ALREADY_ACTIVE, OutcomeStatus.SKIPPED):
        assert not ActivationOutcome(status, instance).failed
