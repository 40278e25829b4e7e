#!/usr/bin/env python3
import argparse
from dataclasses import replace

from .config.config_manager import load_config
from .relay.ctl import RelayController


def serve(config):
    """Run the relay in the foreground."""
    import uvicorn
    from .relay.proxy import create_app

    print(f"Proxy listening on http://localhost:{config.port}")
    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        log_level='info',
        timeout_keep_alive=60,
        http='h11',
    )


def main(argv=None):
    """Main entry point that processes CLI arguments"""
    parser = argparse.ArgumentParser(
        description='CORS relay - local proxy for browser clients',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Examples:
  crl serve                     Run the relay in the foreground
  crl start --port 3001         Start the relay in the background
  crl status                    Display relay status

Environment:
  PORT, HOST, ALLOWED_HOSTS (comma separated), POLL_TIMEOUT, RELAY_READ_TIMEOUT""",
        prog='crl'
    )
    subparsers = parser.add_subparsers(
        dest='command',
        title='Commands',
        description='Use crl <command> --help for detailed help',
        help='Command description'
    )

    for name, help_text in (
        ('serve', 'Run the relay in the foreground'),
        ('start', 'Start the relay in the background'),
        ('restart', 'Restart the background relay'),
    ):
        sub = subparsers.add_parser(name, help=help_text, description=help_text)
        sub.add_argument('--host', help='Interface to bind (default 0.0.0.0)')
        sub.add_argument('--port', type=int, help='Port to listen on (default 3000)')

    subparsers.add_parser('stop', help='Stop the background relay')
    subparsers.add_parser('status', help='Show relay status')

    args = parser.parse_args(argv)

    config = load_config()
    if getattr(args, 'host', None):
        config = replace(config, host=args.host)
    if getattr(args, 'port', None):
        config = replace(config, port=args.port)
    controller = RelayController(config)

    if args.command == 'serve':
        serve(config)
    elif args.command == 'start':
        controller.start()
    elif args.command == 'stop':
        controller.stop()
    elif args.command == 'restart':
        controller.restart()
    elif args.command == 'status':
        controller.status()
    else:
        parser.print_help()


if __name__ == '__main__':
    main()
