"""
molert silence - Silence an alert on a running relay
"""

import requests

from molert.commands.cmd_list import DEFAULT_URL


def register(subparsers):
    """Register the silence command."""
    parser = subparsers.add_parser(
        'silence',
        help='Silence an alert',
        description=(
            'Silence the alert identified by its generator URL. '
            'Duration < 0 silences forever, 0 uses the relay default, '
            'a small positive value effectively un-silences soon.'
        )
    )
    parser.add_argument('alert_url', help='Generator URL of the alert')
    parser.add_argument('--duration', type=int, default=0, help='Silence duration in seconds (default: relay default)')
    parser.add_argument('--url', default=DEFAULT_URL, help=f'Relay base URL (default: {DEFAULT_URL})')


def execute(args) -> int:
    """Execute the silence command."""
    try:
        response = requests.post(
            f"{args.url.rstrip('/')}/silence",
            json={"url": args.alert_url, "duration": args.duration},
            timeout=5,
        )
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        print(f"✗ Failed to silence {args.alert_url}: {e}")
        return 1

    print(f"✓ Silence requested for {args.alert_url}")
    return 0
