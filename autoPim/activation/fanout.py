"""
Concurrent self-activation of discovered role eligibilities
"""

# Standard library imports
import json
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, List, Optional, Tuple

# Local imports
from ..arm.api_client import ArmAPIClient
from ..errors import ActivationTransportError
from .models import (
    DEFAULT_DURATION,
    DEFAULT_JUSTIFICATION,
    ActivationOutcome,
    ActivationRequest,
    OutcomeStatus,
    RoleEligibilityInstance,
)


SUCCESS_STATUS_CODES = {200, 201, 202}
ROLE_ASSIGNMENT_EXISTS = "RoleAssignmentExists"


def classify_response(status_code: int, body: str) -> Tuple[OutcomeStatus, str]:
    """Classify an activation response.

    A 200/201/202 is an activation. Anything else is inspected for the
    'RoleAssignmentExists' error code, which means the role is already active
    and is not a failure whatever status carried it.

    Returns:
        Tuple[OutcomeStatus, str]: Status and a detail message for reporting
    """
    # The body of a success response is not read: an error code there does not downgrade it
    if status_code in SUCCESS_STATUS_CODES:
        return OutcomeStatus.ACTIVATED, ''

    try:
        data = json.loads(body) if body else None
    except ValueError:
        return OutcomeStatus.FAILED, f"HTTP {status_code}, unparsable body: {body}"

    error = data.get('error') if isinstance(data, dict) else None
    code = error.get('code') if isinstance(error, dict) else None
    if code == ROLE_ASSIGNMENT_EXISTS:
        return OutcomeStatus.ALREADY_ACTIVE, ''

    return OutcomeStatus.FAILED, f"HTTP {status_code}: {body}"


def activate_role(
    api_client: ArmAPIClient,
    instance: RoleEligibilityInstance,
    justification: str = DEFAULT_JUSTIFICATION,
    duration: str = DEFAULT_DURATION,
    dry_run: bool = False,
    progress_callback: Optional[Callable] = None,
    debug: bool = False
) -> ActivationOutcome:
    """Activate a single role eligibility.

    Runs inside a worker thread. Request, transport and response errors become
    a FAILED outcome so sibling activations are not affected.
    """
    name = instance.subscription_display_name

    def report(message: str):
        if not progress_callback:
            return
        try:
            progress_callback(message)
        except OSError:
            # Output errors (closed stdout pipe) leave the outcome of this unit unchanged
            pass

    try:
        request = ActivationRequest.for_instance(instance, justification=justification, duration=duration)
    except ValueError as e:
        report(f"Error: Cannot build activation request for '{name}': {e}")
        return ActivationOutcome(OutcomeStatus.FAILED, instance, detail=str(e))

    if debug:
        report(f"  PUT {request.url()}")

    if dry_run:
        report(f"[DRY-RUN] Would activate role {instance.role_definition_id} on '{name}'")
        return ActivationOutcome(OutcomeStatus.SKIPPED, instance, request_id=request.request_id)

    report(f"  Activating PIM role on '{name}'...")

    try:
        response = api_client.create_role_assignment_schedule_request(
            request.subscription_id, request.request_id, request.to_body()
        )
    except ActivationTransportError as e:
        report(f"Error: Failed to activate PIM on '{name}': {e}")
        return ActivationOutcome(OutcomeStatus.FAILED, instance, request_id=request.request_id, detail=str(e))
    except Exception as e:
        report(f"Error: Unexpected error activating PIM on '{name}': {e}")
        return ActivationOutcome(OutcomeStatus.FAILED, instance, request_id=request.request_id,
                                 detail=f"{type(e).__name__}: {e}")

    status, detail = classify_response(response.status_code, response.text)

    if status is OutcomeStatus.ACTIVATED:
        report(f"✓ Activated PIM on '{name}'")
    elif status is OutcomeStatus.ALREADY_ACTIVE:
        report(f"[WARN] PIM is already activated on '{name}'")
    else:
        report(f"Error: Failed to activate PIM on '{name}': {detail}")

    return ActivationOutcome(status, instance, request_id=request.request_id,
                             status_code=response.status_code, detail=detail)


def activate_all(
    api_client: ArmAPIClient,
    roles: Dict[str, List[RoleEligibilityInstance]],
    justification: str = DEFAULT_JUSTIFICATION,
    duration: str = DEFAULT_DURATION,
    dry_run: bool = False,
    progress_callback: Optional[Callable] = None,
    debug: bool = False
) -> List[ActivationOutcome]:
    """Activate every discovered role eligibility in parallel.

    One worker thread is started per eligibility and the call only returns once
    all of them have finished. Outcomes come back through the futures; workers
    share nothing but the read-only API client.

    Parameters:
        api_client (ArmAPIClient): Authenticated client
        roles (Dict[str, List[RoleEligibilityInstance]]): Output of discover_eligible_roles()
        justification (str): Justification recorded on each request
        duration (str): ISO-8601 activation duration
        dry_run (bool): If True, report what would be activated without sending anything
        progress_callback (Callable, optional): Callback function(message), called from worker threads
        debug (bool): If True, report request URLs

    Returns:
        List[ActivationOutcome]: One outcome per eligibility, in discovery order
    """
    instances = [instance for name in roles for instance in roles[name]]
    if not instances:
        return []

    outcomes: List[Optional[ActivationOutcome]] = [None] * len(instances)

    with ThreadPoolExecutor(max_workers=len(instances)) as executor:
        future_to_index = {
            executor.submit(
                activate_role, api_client, instance, justification, duration,
                dry_run, progress_callback, debug
            ): index
            for index, instance in enumerate(instances)
        }

        for future in as_completed(future_to_index):
            index = future_to_index[future]
            try:
                outcomes[index] = future.result()
            except Exception as e:
                outcomes[index] = ActivationOutcome(OutcomeStatus.FAILED, instances[index],
                                                    detail=f"{type(e).__name__}: {e}")

    return outcomes
