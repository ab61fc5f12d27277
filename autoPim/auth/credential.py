"""
Access token acquisition for Azure Resource Manager
"""

# Standard library imports
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional

# Third-party imports
import jwt
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import AuthenticationRecord, InteractiveBrowserCredential, TokenCachePersistenceOptions

# Local imports
from ..arm.api_client import ARM_SCOPE
from ..errors import AuthenticationError


AUTH_RECORD_FILE = "authrecord.json"
TOKEN_CACHE_NAME = "autopim"
MIN_TOKEN_LENGTH = 20


def load_auth_record(record_path: Path) -> Optional[AuthenticationRecord]:
    """Read a stored authentication record, or None if there is none usable."""
    if not record_path.exists():
        return None
    try:
        return AuthenticationRecord.deserialize(record_path.read_text(encoding='utf-8'))
    except (OSError, ValueError, KeyError) as e:
        print(f"[WARN] Ignoring unreadable authentication record {record_path}: {e}")
        return None


def store_auth_record(record: AuthenticationRecord, record_path: Path):
    """Write the authentication record readable by the current user only."""
    fd = os.open(record_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, 'w', encoding='utf-8') as f:
        f.write(record.serialize())


def _build_credential(tenant: str, cache_dir: Optional[Path],
                      progress_callback: Optional[Callable]) -> InteractiveBrowserCredential:
    if cache_dir is None:
        return InteractiveBrowserCredential(tenant_id=tenant)

    record_path = Path(cache_dir) / AUTH_RECORD_FILE
    record = load_auth_record(record_path)
    if record and progress_callback:
        progress_callback(f"  Using cached authentication record for {record.username}")

    credential = InteractiveBrowserCredential(
        tenant_id=tenant,
        cache_persistence_options=TokenCachePersistenceOptions(name=TOKEN_CACHE_NAME),
        authentication_record=record,
    )

    if record is None:
        # No stored record: authenticate once interactively and remember the account
        if progress_callback:
            progress_callback("  No cached authentication record, opening browser for sign-in...")
        record = credential.authenticate(scopes=[ARM_SCOPE])
        try:
            store_auth_record(record, record_path)
        except OSError as e:
            print(f"[WARN] Failed to store authentication record: {e}")

    return credential


def _is_cache_unavailable(error: BaseException) -> bool:
    """True if the error chain shows the persistent token cache could not be opened.

    azure-identity reports a missing secure storage backend (no libsecret or
    D-Bus session) as a ValueError, usually chained under the
    ClientAuthenticationError raised by authenticate() or get_token().
    """
    seen = set()
    while error is not None and id(error) not in seen:
        if isinstance(error, ValueError):
            return True
        seen.add(id(error))
        error = error.__cause__ or error.__context__
    return False


def acquire_token(tenant: str, cache_dir: Optional[Path] = None,
                  progress_callback: Optional[Callable] = None) -> str:
    """Sign in interactively and return an Azure Resource Manager access token.

    If the persistent token cache cannot be used on this host, a warning is
    printed and sign-in is retried without it.

    Parameters:
        tenant (str): Entra ID tenant ID or domain
        cache_dir (Path, optional): Directory for the authentication record. When None,
                                    no persistent token cache is used.
        progress_callback (Callable, optional): Callback function(message) for status updates

    Returns:
        str: Bearer token for https://management.azure.com

    Raises:
        AuthenticationError: If sign-in or token acquisition fails
    """
    if not tenant:
        raise AuthenticationError("Tenant ID not provided (use --tenant or 'tenant' in the config file)")

    try:
        try:
            credential = _build_credential(tenant, cache_dir, progress_callback)
            return credential.get_token(ARM_SCOPE).token
        except (ClientAuthenticationError, ValueError) as e:
            if cache_dir is None or not _is_cache_unavailable(e):
                raise
            print(f"[WARN] Persistent token caching not possible in this environment: "
                  f"{getattr(e, 'message', None) or e}")

        credential = _build_credential(tenant, None, progress_callback)
        return credential.get_token(ARM_SCOPE).token
    except ClientAuthenticationError as e:
        raise AuthenticationError(f"Failed to authenticate: {e.message}")
    except ValueError as e:
        raise AuthenticationError(f"Failed to authenticate: {e}")


def validate_token_format(token: str) -> str:
    """Return the stripped token, rejecting values that cannot be a bearer token."""
    token = (token or '').strip()
    if len(token) < MIN_TOKEN_LENGTH:
        raise AuthenticationError("Invalid token format")
    return token


def describe_token(token: str) -> Dict[str, Any]:
    """Extract identity details from a JWT access token without verifying it.

    Returns:
        Dict with 'oid', 'tid', 'user' and 'expires' (datetime or None), or an
        empty dict if the token cannot be decoded
    """
    try:
        decoded = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return {}

    exp = decoded.get('exp')
    return {
        'oid': decoded.get('oid'),
        'tid': decoded.get('tid'),
        'user': decoded.get('upn') or decoded.get('unique_name') or decoded.get('preferred_username'),
        'expires': datetime.fromtimestamp(exp, tz=timezone.utc) if isinstance(exp, (int, float)) else None,
    }
