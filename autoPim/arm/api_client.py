"""
Azure Resource Manager API client for PIM role eligibility and activation calls
"""

# Standard library imports
from typing import Any, Dict

# Third-party imports
import requests
import urllib3

# Local imports
from ..errors import ActivationTransportError, DiscoveryError


ARM_DOMAIN = "management.azure.com"
ARM_SCOPE = f"https://{ARM_DOMAIN}/.default"
AUTHORIZATION_API_VERSION = "2020-10-01"

ELIGIBILITY_INSTANCES_URL = (
    f"https://{ARM_DOMAIN}/providers/Microsoft.Authorization/roleEligibilityScheduleInstances"
    f"?api-version={AUTHORIZATION_API_VERSION}&$filter=asTarget()"
)
ASSIGNMENT_REQUEST_URL = (
    f"https://{ARM_DOMAIN}/providers/Microsoft.Subscription/subscriptions/{{subscription_id}}"
    f"/providers/Microsoft.Authorization/roleAssignmentScheduleRequests/{{request_id}}"
    f"?api-version={AUTHORIZATION_API_VERSION}"
)

DEFAULT_TIMEOUT = 30


class ArmAPIClient:
    """Client for the Azure Resource Manager PIM endpoints"""

    def __init__(self, token: str, proxy: str = None, timeout: float = DEFAULT_TIMEOUT):
        """Initialize the ARM API client with an access token.

        Parameters:
            token (str): Azure Resource Manager access token. Surrounding whitespace is stripped.
            proxy (str): Proxy address in format 'host:port' (e.g., '127.0.0.1:8080').
                        If provided, routes all requests through proxy without cert verification.
            timeout (float): Per-request timeout in seconds (default: 30)
        """
        if not token or not token.strip():
            raise ValueError("An access token is required")

        self.token = token.strip()
        self.timeout = timeout

        # Proxy configuration for debugging (e.g., Burp Suite)
        if proxy:
            self.proxies = {
                'http': f'http://{proxy}',
                'https': f'http://{proxy}'
            }
            self.verify_ssl = False
            # Suppress SSL warnings when using proxy
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
        else:
            self.proxies = None
            self.verify_ssl = True

        # The session is shared read-only by all activation threads; headers are fixed here
        self.session = requests.Session()
        self.session.proxies = self.proxies
        self.session.verify = self.verify_ssl
        self.session.headers.update({
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json"
        })

    def list_role_eligibility_schedule_instances(self) -> Dict[str, Any]:
        """Fetch every role eligibility schedule instance targeting the signed-in principal.

        Returns:
            Dict[str, Any]: The decoded JSON response body

        Raises:
            DiscoveryError: On transport failure, timeout, non-2xx status or a non-JSON body
        """
        try:
            response = self.session.get(ELIGIBILITY_INSTANCES_URL, timeout=self.timeout)
        except requests.exceptions.Timeout:
            raise DiscoveryError(
                f"Request timed out after {self.timeout}s while listing eligible roles. Check your network connection."
            )
        except requests.exceptions.RequestException as e:
            raise DiscoveryError(f"Failed to list eligible roles: {e}")

        if response.status_code == 401:
            raise DiscoveryError(
                "Invalid or expired access token. Please provide a valid Azure Resource Manager access token.",
                status_code=401, body=response.text
            )
        elif response.status_code == 403:
            raise DiscoveryError(
                "Access denied while listing eligible roles. The token lacks the required permissions.",
                status_code=403, body=response.text
            )
        elif not 200 <= response.status_code < 300:
            raise DiscoveryError(
                f"Listing eligible roles failed with status {response.status_code}: {response.text}",
                status_code=response.status_code, body=response.text
            )

        try:
            return response.json()
        except ValueError as e:
            raise DiscoveryError(
                f"Failed to parse eligible roles response as JSON: {e}",
                status_code=response.status_code, body=response.text
            )

    def create_role_assignment_schedule_request(self, subscription_id: str, request_id: str,
                                                body: Dict[str, Any]) -> requests.Response:
        """Submit one role assignment schedule request.

        The response is returned whatever its status code; classifying it is up to the caller.

        Parameters:
            subscription_id (str): Subscription GUID the role is scoped to
            request_id (str): Unique identifier of this request, used as the resource name
            body (Dict[str, Any]): JSON request body

        Returns:
            requests.Response: The raw HTTP response

        Raises:
            ActivationTransportError: If no HTTP response was received (network error or timeout)
        """
        url = ASSIGNMENT_REQUEST_URL.format(subscription_id=subscription_id, request_id=request_id)

        try:
            return self.session.put(url, json=body, timeout=self.timeout)
        except requests.exceptions.Timeout:
            raise ActivationTransportError(f"Request timed out after {self.timeout}s")
        except requests.exceptions.RequestException as e:
            raise ActivationTransportError(f"{type(e).__name__}: {e}")
