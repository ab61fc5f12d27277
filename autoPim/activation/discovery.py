"""
Discovery of eligible PIM role instances for a set of subscriptions
"""

# Standard library imports
from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, List, Optional

# Local imports
from ..arm.api_client import ArmAPIClient
from ..errors import DiscoveryError
from .models import RoleEligibilityInstance


def _field_path(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _require_str(obj: Dict[str, Any], key: str, path: str, index: int) -> str:
    value = obj.get(key)
    if not isinstance(value, str):
        if value is None:
            raise DiscoveryError(f"Eligible role #{index} is missing '{_field_path(path, key)}'")
        raise DiscoveryError(
            f"Eligible role #{index} has a non-string '{_field_path(path, key)}' ({type(value).__name__})"
        )
    return value


def _require_dict(obj: Dict[str, Any], key: str, path: str, index: int) -> Dict[str, Any]:
    value = obj.get(key)
    if not isinstance(value, dict):
        if value is None:
            raise DiscoveryError(f"Eligible role #{index} is missing '{_field_path(path, key)}'")
        raise DiscoveryError(
            f"Eligible role #{index} has a non-object '{_field_path(path, key)}' ({type(value).__name__})"
        )
    return value


def parse_eligibility_instances(payload: Any) -> List[RoleEligibilityInstance]:
    """Parse a roleEligibilityScheduleInstances response body into typed records.

    Every element is validated, including those that will later be filtered out,
    so that a schema change upstream is reported instead of silently skipped.

    Parameters:
        payload: Decoded JSON response body

    Returns:
        List[RoleEligibilityInstance]: One record per element of 'value', in response order

    Raises:
        DiscoveryError: If the body or any element does not match the expected schema
    """
    if not isinstance(payload, dict):
        raise DiscoveryError(f"Expected a JSON object, got {type(payload).__name__}")

    values = payload.get('value')
    if not isinstance(values, list):
        raise DiscoveryError("Response has no 'value' array")

    instances = []
    for index, element in enumerate(values):
        if not isinstance(element, dict):
            raise DiscoveryError(f"Eligible role #{index} is not a JSON object")

        properties = _require_dict(element, 'properties', '', index)
        expanded = _require_dict(properties, 'expandedProperties', 'properties', index)
        scope = _require_dict(expanded, 'scope', 'properties.expandedProperties', index)

        instances.append(RoleEligibilityInstance(
            scope_id=_require_str(scope, 'id', 'properties.expandedProperties.scope', index),
            subscription_display_name=_require_str(scope, 'displayName', 'properties.expandedProperties.scope', index),
            principal_id=_require_str(properties, 'principalId', 'properties', index),
            role_definition_id=_require_str(properties, 'roleDefinitionId', 'properties', index),
            eligibility_schedule_id=_require_str(properties, 'roleEligibilityScheduleId', 'properties', index),
        ))

    return instances


def filter_by_subscription(instances: Iterable[RoleEligibilityInstance],
                           target_subscriptions: Iterable[str]) -> Dict[str, List[RoleEligibilityInstance]]:
    """Keep the instances whose subscription display name is one of the targets.

    Names are compared by exact string equality. Several eligibilities on the
    same subscription are all kept, in response order.

    Raises:
        DiscoveryError: If a kept instance's scope id has no subscription segment
    """
    targets = set(target_subscriptions)
    roles = defaultdict(list)

    for instance in instances:
        if instance.subscription_display_name not in targets:
            continue
        try:
            _ = instance.subscription_id
        except ValueError as e:
            raise DiscoveryError(str(e))
        roles[instance.subscription_display_name].append(instance)

    return dict(roles)


def discover_eligible_roles(
    api_client: ArmAPIClient,
    target_subscriptions: Iterable[str],
    progress_callback: Optional[Callable] = None,
    debug: bool = False
) -> Dict[str, List[RoleEligibilityInstance]]:
    """List the caller's eligible roles and keep those on the target subscriptions.

    Parameters:
        api_client (ArmAPIClient): Authenticated client
        target_subscriptions (Iterable[str]): Subscription display names to activate
        progress_callback (Callable, optional): Callback function(message) for status updates
        debug (bool): If True, report every eligible role found, not only matches

    Returns:
        Dict[str, List[RoleEligibilityInstance]]: Matched instances keyed by subscription display name.
            Empty if nothing matched.

    Raises:
        ValueError: If no target subscriptions are given
        DiscoveryError: If the listing fails or the response is malformed
    """
    targets = set(target_subscriptions)
    if not targets:
        raise ValueError("At least one target subscription is required")

    payload = api_client.list_role_eligibility_schedule_instances()
    instances = parse_eligibility_instances(payload)

    if progress_callback:
        progress_callback(f"✓ Retrieved {len(instances)} eligible role(s)")
        if debug:
            for instance in instances:
                progress_callback(
                    f"  Role found: {instance.subscription_display_name} ({instance.scope_id}) "
                    f"role={instance.role_definition_id}"
                )

    roles = filter_by_subscription(instances, targets)

    if progress_callback:
        for name in sorted(roles):
            progress_callback(f"  Found {len(roles[name])} eligible role(s) on '{name}'")
        for name in sorted(targets - set(roles)):
            progress_callback(f"[WARN] No eligible role found on '{name}'")

    return roles
