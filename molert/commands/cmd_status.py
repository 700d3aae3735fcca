"""
molert status - Check health of a running relay
"""

import requests

from molert.commands.cmd_list import DEFAULT_URL


def register(subparsers):
    """Register the status command."""
    parser = subparsers.add_parser(
        'status',
        help='Show relay health',
        description='Check the relay and its Redis connectivity'
    )
    parser.add_argument('--url', default=DEFAULT_URL, help=f'Relay base URL (default: {DEFAULT_URL})')


def execute(args) -> int:
    """Execute the status command."""
    try:
        response = requests.get(f"{args.url.rstrip('/')}/health", timeout=2)
    except requests.exceptions.RequestException as e:
        print(f"✗ molert - Error: {str(e)[:60]}")
        return 1

    try:
        body = response.json()
    except ValueError:
        body = {}

    if response.status_code == 200:
        print(f"✓ molert {body.get('version', '')} - Healthy (redis: {body.get('redis', 'unknown')})")
        return 0

    print(f"✗ molert - Unhealthy (HTTP {response.status_code}) {body.get('error', '')}")
    return 1
