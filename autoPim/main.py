"""
Main CLI entry point for autoPim
"""

import argparse
import sys
import threading
import time
import traceback
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional

from . import version_string
from .activation.discovery import discover_eligible_roles
from .activation.fanout import activate_all
from .activation.models import ActivationOutcome, OutcomeStatus
from .arm.api_client import ArmAPIClient
from .auth.credential import acquire_token, describe_token, validate_token_format
from .config import PimConfig, find_config_file, init_cache_dir, init_config_dir
from .errors import AuthenticationError, ConfigError, DiscoveryError


def run_activation(token: str, config: PimConfig, progress_callback: Optional[Callable] = None) -> Dict:
    """Discover eligible roles on the configured subscriptions and activate them.

    Discovery runs first and must succeed; activation then runs one thread per
    eligible role. Activation failures never abort the run, they are counted.

    Parameters:
        token (str): Azure Resource Manager bearer token
        config (PimConfig): Validated run configuration
        progress_callback (Callable, optional): Callback function(message) for status updates.
                                                May be called from several threads at once.

    Returns:
        Dict: {
            'success': bool,
            'error': str or None,
            'roles': Dict[str, List[RoleEligibilityInstance]],
            'outcomes': List[ActivationOutcome],
            'failed_count': int,
            'runtime': float
        }
    """
    start_time = time.time()
    result = {
        'success': False,
        'error': None,
        'roles': {},
        'outcomes': [],
        'failed_count': 0,
        'runtime': 0.0,
    }

    api_client = ArmAPIClient(token, proxy=config.proxy, timeout=config.timeout)

    if progress_callback:
        progress_callback("Listing eligible role assignments...")

    try:
        roles = discover_eligible_roles(
            api_client, config.subscriptions,
            progress_callback=progress_callback, debug=config.debug
        )
    except DiscoveryError as e:
        result['error'] = f"Failed to get role eligibility schedule instances: {e}"
        result['runtime'] = time.time() - start_time
        return result

    result['roles'] = roles

    if not roles:
        if progress_callback:
            progress_callback("[WARN] Nothing to activate")
        result['success'] = True
        result['runtime'] = time.time() - start_time
        return result

    if progress_callback:
        count = sum(len(instances) for instances in roles.values())
        progress_callback(f"\nActivating {count} role(s)...")

    outcomes = activate_all(
        api_client, roles,
        justification=config.justification,
        duration=config.duration,
        dry_run=config.dry_run,
        progress_callback=progress_callback,
        debug=config.debug
    )

    failed_count = sum(1 for outcome in outcomes if outcome.failed)
    result['outcomes'] = outcomes
    result['failed_count'] = failed_count
    result['success'] = failed_count == 0
    if failed_count:
        result['error'] = f"{failed_count} of {len(outcomes)} activation(s) failed"
    result['runtime'] = time.time() - start_time
    return result


def format_outcome(outcome: ActivationOutcome) -> str:
    """One summary line for an activation outcome."""
    name = outcome.instance.subscription_display_name
    if outcome.status is OutcomeStatus.FAILED:
        return f"  ✗ {name}: failed ({outcome.detail})"
    if outcome.status is OutcomeStatus.ALREADY_ACTIVE:
        return f"  • {name}: already active"
    if outcome.status is OutcomeStatus.SKIPPED:
        return f"  • {name}: dry-run skipped"
    return f"  ✓ {name}: activated"


def load_config(args) -> PimConfig:
    """Build the run configuration from the config file and command-line flags."""
    if args.config:
        config = PimConfig.from_file(args.config)
    else:
        try:
            config_dir = init_config_dir()
        except OSError as e:
            print(f"[WARN] Failed to initialize config directory: {e}")
            config_dir = None
        config_file = find_config_file(config_dir)
        config = PimConfig.from_file(config_file) if config_file else PimConfig()

    config.merge_cli(args)
    config.validate()
    return config


def get_token(args, config: PimConfig, progress_callback: Callable) -> str:
    """Return the bearer token from --token, or sign in interactively."""
    if args.token:
        return validate_token_format(args.token)

    cache_dir: Optional[Path] = None
    if config.use_cache:
        try:
            cache_dir = init_cache_dir()
        except OSError as e:
            print(f"[WARN] Failed to initialize cache directory: {e}")
    else:
        progress_callback("  Not using cached authentication record")

    return validate_token_format(acquire_token(config.tenant, cache_dir, progress_callback=progress_callback))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='autopim',
        description='Activate eligible Azure PIM roles on a set of subscriptions',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Activate the eligible roles on two subscriptions (tenant read from ~/.config/autopim/pim.toml)
  python -m autoPim --subs "Sub-A,Sub-B"

  # Show what would be activated without sending any request
  python -m autoPim --subs "Sub-A" --tenant contoso.onmicrosoft.com --dryrun

  # Use an existing ARM token instead of signing in
  python -m autoPim --subs "Sub-A" --token "$(az account get-access-token --query accessToken -o tsv)"
        """
    )

    parser.add_argument('--subs', help='Comma separated subscription names for PIM activation (required unless set in the config file)')
    parser.add_argument('--tenant', help='Azure tenant ID (overrides the config file)')
    parser.add_argument('--token', help='Azure Resource Manager access token (skips interactive sign-in)')
    parser.add_argument('--config', help='Path to a pim.toml configuration file')

    parser.add_argument('--justification', help='Justification recorded on each activation request')
    parser.add_argument('--duration', help='ISO-8601 activation duration (default: PT8H)')
    parser.add_argument('--timeout', type=float, help='Per-request timeout in seconds (default: 30)')

    parser.add_argument('--dryrun', action='store_true', help='Dry run mode, do not activate PIM')
    parser.add_argument('--nocache', action='store_true', help='Do not use cached authentication record')
    parser.add_argument('--proxy', metavar='HOST:PORT',
                       help='Route all HTTP requests through specified proxy (e.g. 127.0.0.1:8080) without certificate verification')
    parser.add_argument('--debug', action='store_true', help='Debug mode')
    parser.add_argument('-v', '--version', action='store_true', help='Print version information and exit')
    return parser


def main(argv: Optional[List[str]] = None):
    """CLI entry point for PIM activation."""
    start_timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"Version: {version_string()}")
        return 0

    print_lock = threading.Lock()

    def progress_callback(message: str):
        # Activation threads report concurrently; keep lines whole
        with print_lock:
            print(message, flush=True)

    try:
        try:
            config = load_config(args)
        except ConfigError as e:
            print(f"Error: {e}")
            if not args.subs:
                parser.print_usage()
            return 1

        if config.dry_run:
            print("Dry run mode enabled, not activating PIM")

        try:
            token = get_token(args, config, progress_callback)
        except AuthenticationError as e:
            print(f"Error: {e}")
            return 1

        claims = describe_token(token)

        print(f"\n{'='*60}")
        print("autoPim - PIM Role Activation")
        print(f"{'='*60}")
        print(f"Started:       {start_timestamp}")
        if claims.get('user'):
            print(f"Signed in as:  {claims['user']}")
        if claims.get('tid'):
            print(f"Tenant:        {claims['tid']}")
        if claims.get('expires'):
            print(f"Token expires: {claims['expires'].strftime('%Y-%m-%d %H:%M:%S UTC')}")
        print(f"Subscriptions: {', '.join(config.subscriptions)}")
        print(f"Duration:      {config.duration}")
        print(f"{'='*60}")
        if config.debug and claims.get('oid'):
            print(f"  Principal object ID: {claims['oid']}")

        result = run_activation(token, config, progress_callback=progress_callback)

        if result['outcomes']:
            print(f"\n{'='*60}")
            print("Summary")
            print(f"{'='*60}")
            for outcome in sorted(result['outcomes'], key=lambda o: o.instance.subscription_display_name):
                print(format_outcome(outcome))
            print(f"Runtime:       {result['runtime']:.2f}s")
            print(f"{'='*60}")

        if not result['success']:
            print(f"\nError: {result['error']}")
            return 1

        return 0

    except KeyboardInterrupt:
        print("\n\nActivation interrupted by user")
        return 1
    except ValueError as e:
        print(f"\nError: {e}")
        return 1
    except Exception as e:
        print(f"\nUnexpected error: {e}")
        traceback.print_exc()
        return 1


if __name__ == '__main__':
    sys.exit(main())
