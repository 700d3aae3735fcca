"""
molert serve - Run the relay (HTTP gateway and scan scheduler)
"""

FLAGS = ('slack_webhook', 'redis_url', 'expiration', 'frequency',
         'listen_addr', 'silence_duration', 'external_url')


def register(subparsers):
    """Register the serve command."""
    parser = subparsers.add_parser(
        'serve',
        help='Run the relay',
        description='Start the HTTP gateway and the scan scheduler. Flags override environment variables.'
    )
    parser.add_argument('--slack_webhook', help='Slack webhook URL (env: SLACK_WEBHOOK_URL)')
    parser.add_argument('--redis_url', help='Redis address host:port (env: REDIS_URL)')
    parser.add_argument('--expiration', type=int, help='Alert freshness window in seconds (env: ALERT_EXPIRATION)')
    parser.add_argument('--frequency', type=int, help='Scan interval in seconds (env: SCAN_FREQUENCY)')
    parser.add_argument('--listen_addr', help='Listen address host:port (env: LISTEN_ADDR)')
    parser.add_argument('--silence_duration', type=int, help='Default silence in seconds (env: SILENCE_DURATION)')
    parser.add_argument('--external_url', help='URL under which molert is externally reachable (env: EXTERNAL_URL)')


def execute(args) -> int:
    """Execute the serve command. Blocks until the process is stopped."""
    from molert.relay_service import serve

    serve({flag: getattr(args, flag, None) for flag in FLAGS})
    return 0
