"""
Typed records flowing through discovery and activation
"""

# Standard library imports
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

# Local imports
from ..arm.api_client import ASSIGNMENT_REQUEST_URL


DEFAULT_JUSTIFICATION = "AutoPIM activation"
DEFAULT_DURATION = "PT8H"


@dataclass(frozen=True)
class RoleEligibilityInstance:
    """One eligible but inactive role assignment visible to the signed-in principal."""

    scope_id: str
    subscription_display_name: str
    principal_id: str
    role_definition_id: str
    eligibility_schedule_id: str

    @property
    def subscription_id(self) -> str:
        """Subscription GUID taken from the scope id.

        '/subscriptions/<guid>/...' splits to ['', 'subscriptions', '<guid>', ...],
        so the GUID is always segment 2.

        Raises:
            ValueError: If the scope id has no subscription segment
        """
        segments = self.scope_id.split('/')
        if len(segments) < 3 or not segments[2]:
            raise ValueError(f"Scope id '{self.scope_id}' has no subscription segment")
        return segments[2]


@dataclass(frozen=True)
class ActivationRequest:
    """API-ready self-activation request for one role eligibility."""

    subscription_id: str
    principal_id: str
    role_definition_id: str
    eligibility_schedule_id: str
    justification: str = DEFAULT_JUSTIFICATION
    duration: str = DEFAULT_DURATION
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def for_instance(cls, instance: RoleEligibilityInstance,
                     justification: str = DEFAULT_JUSTIFICATION,
                     duration: str = DEFAULT_DURATION) -> 'ActivationRequest':
        """Build a request with a freshly generated request id."""
        return cls(
            subscription_id=instance.subscription_id,
            principal_id=instance.principal_id,
            role_definition_id=instance.role_definition_id,
            eligibility_schedule_id=instance.eligibility_schedule_id,
            justification=justification,
            duration=duration,
        )

    def to_body(self) -> Dict[str, Any]:
        """Serialize to the roleAssignmentScheduleRequests PUT body."""
        return {
            "properties": {
                "principalId": self.principal_id,
                "roleDefinitionId": self.role_definition_id,
                "requestType": "SelfActivate",
                "linkedRoleEligibilityScheduleId": self.eligibility_schedule_id,
                "justification": self.justification,
                "scheduleInfo": {
                    "expiration": {
                        "type": "AfterDuration",
                        "endDateTime": None,
                        "duration": self.duration,
                    }
                },
            }
        }

    def url(self) -> str:
        return ASSIGNMENT_REQUEST_URL.format(subscription_id=self.subscription_id, request_id=self.request_id)


class OutcomeStatus(Enum):
    ACTIVATED = "activated"
    ALREADY_ACTIVE = "already active"
    SKIPPED = "dry-run skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class ActivationOutcome:
    """Result of one activation unit."""

    status: OutcomeStatus
    instance: RoleEligibilityInstance
    request_id: Optional[str] = None
    status_code: Optional[int] = None
    detail: str = ''

    @property
    def failed(self) -> bool:
        return self.status is OutcomeStatus.FAILED
