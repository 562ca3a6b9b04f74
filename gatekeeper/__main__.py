"""
Gatekeeper CLI
"""
import argparse
import os
import sys

import uvicorn

from gatekeeper.config.loader import load_settings


def main(argv=None):
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description="Gatekeeper - blacklist, rate limiting and sanitization in front of an API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with defaults (gatekeeper/config/defaults.yaml + GATEKEEPER_* env vars)
  python -m gatekeeper

  # Run with a custom config file on another port
  python -m gatekeeper --config /etc/gatekeeper.yaml --port 8080
        """
    )
    parser.add_argument('--host', help='Interface to bind (default: listen_host setting)')
    parser.add_argument('--port', type=int, help='Port to bind (default: listen_port setting)')
    parser.add_argument('--config', help='YAML config file (sets GATEKEEPER_CONFIG_FILE)')

    args = parser.parse_args(argv)

    if args.config:
        if not os.path.isfile(args.config):
            print(f"Error: config file not found: {args.config}", file=sys.stderr)
            return 1
        os.environ["GATEKEEPER_CONFIG_FILE"] = args.config

    settings = load_settings()
    uvicorn.run(
        "gatekeeper.main:create_app",
        factory=True,
        host=args.host or settings.listen_host,
        port=args.port or settings.listen_port,
        log_level=settings.log_level.lower(),
    )
    return 0


if __name__ == '__main__':
    sys.exit(main())
