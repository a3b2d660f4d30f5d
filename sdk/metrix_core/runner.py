"""
initialize() entry point and the `metrix-send` command.
"""

import argparse
import json
import sys

from .constants import SDK_VERSION
from .config import log, safe_print, load_config, save_config, setup_logging
from .app import MetrixClient


def initialize(options, storage=None, http=None, probe=None, background=True):
    """
    Create and start a client handle. Each call returns a new, independent
    handle; calling start() again on a handle is a no-op.
    """
    return MetrixClient(options, storage=storage, http=http, probe=probe).start(background=background)


def _parse_args(argv):
    parser = argparse.ArgumentParser(
        prog="metrix-send",
        description="Queue one event (or revenue) and flush the queue once.",
    )
    parser.add_argument("--config", help="JSON file with initialize() options")
    parser.add_argument("--app-id", help="overrides appId from the config file")
    parser.add_argument("--save", action="store_true",
                        help="write the effective options back to the config file")
    parser.add_argument("name", help="event name")
    parser.add_argument("--attr", action="append", default=[], metavar="KEY=VALUE",
                        help="custom event attribute (repeatable)")
    parser.add_argument("--revenue", type=float, help="send a revenue event with this amount")
    parser.add_argument("--currency", default=None)
    parser.add_argument("--order-id", default=None)
    return parser.parse_args(argv)


def main(argv=None):
    """Primary CLI entry point."""
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    setup_logging()
    safe_print("Metrix web SDK v" + SDK_VERSION)

    options = load_config(args.config) or {}
    if args.app_id:
        options["appId"] = args.app_id
    if not options.get("appId"):
        safe_print("appId is required (--app-id or config file).")
        return 1

    if args.save:
        try:
            save_config(options, args.config)
        except OSError as e:
            log.warning("Could not save config: %s", e)

    client = initialize(options, background=False)
    try:
        if args.revenue is not None:
            client.send_revenue(args.name, args.revenue, args.currency, args.order_id)
        else:
            attributes = dict(pair.split("=", 1) for pair in args.attr if "=" in pair)
            client.send_event(args.name, attributes)

        attempts = client.tick()
        pending = client.queue.size()
        log.info("Flush finished: %d attempt(s), %d event(s) pending", attempts, pending)
        safe_print(json.dumps({"attempts": attempts, "pending": pending,
                               "userId": client.identity.get()}))
    finally:
        client.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
