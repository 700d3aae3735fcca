"""
molert list - Show alerts known to a running relay
"""

import requests

DEFAULT_URL = 'http://localhost:19093'


def register(subparsers):
    """Register the list command."""
    parser = subparsers.add_parser(
        'list',
        help='List known alerts',
        description='Print the registry snapshot of a running relay'
    )
    parser.add_argument('--url', default=DEFAULT_URL, help=f'Relay base URL (default: {DEFAULT_URL})')


def describe_ttl(silenced: bool, ttl: int) -> str:
    if not silenced:
        return 'active'
    if ttl < 0:
        return 'silenced (forever)'
    return f'silenced ({ttl}s left)'


def execute(args) -> int:
    """Execute the list command."""
    try:
        response = requests.get(f"{args.url.rstrip('/')}/alerts", timeout=5)
        response.raise_for_status()
        states = response.json()
    except (requests.exceptions.RequestException, ValueError) as e:
        print(f"✗ Failed to list alerts: {e}")
        return 1

    if not states:
        print("No alerts")
        return 0

    for state in states:
        alert = state.get('alert', {})
        summary = alert.get('annotations', {}).get('summary', '')
        status = describe_ttl(state.get('silenced', False), state.get('ttl', 0))
        print(f"  {status:24s} {alert.get('generatorURL', '')}  {summary}")

    print()
    print(f"{len(states)} alert(s)")
    return 0
