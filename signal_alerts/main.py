#!/usr/bin/env python3
"""Main entry point for the personalized signal feed."""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import yaml

from .alerts import CustomAlertService
from .echo import GROUP_BY_OPTIONS, find_related
from .models import Signal
from .parser import parse_request
from .pipeline import make_context, run_refresh
from .storage import Storage


def setup_logging(verbose: bool = False, log_file: Optional[str] = None):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    handlers = [logging.StreamHandler(sys.stdout)]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


def load_config(config_path: str) -> dict:
    """Load configuration from YAML file."""
    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_file, "r") as f:
        config = yaml.safe_load(f)

    return config or {}


def print_feed(signals: List[Signal]):
    for position, signal in enumerate(signals, 1):
        flags = "".join(flag for flag, on in (("♥", signal.liked), ("★", signal.saved)) if on)
        print(f"{position:>2}. [{signal.relevance_score:.2f}] {signal.title} ({signal.source_name}) {flags}".rstrip())


def create_alert_from_text(storage: Storage, user_id: str, text: str) -> int:
    logger = logging.getLogger(__name__)
    parsed = parse_request(text)
    if parsed.intent != "create_alert":
        logger.error(f"Not an alert request (detected intent: {parsed.intent})")
        return 1

    alert = CustomAlertService(storage).create_alert(user_id, parsed)
    print(f"Created alert: {alert.title} [{alert.type}]")
    print(f"  {alert.description}")
    return 0


def run_once(
    config: dict,
    user_id: Optional[str] = None,
    notify: bool = True,
    related: Optional[str] = None,
) -> int:
    """Run one refresh and print the resulting feed."""
    logger = logging.getLogger(__name__)
    db_path = config.get("app", {}).get("db_path", "data/signals.sqlite")
    storage = Storage(db_path)

    context = make_context(config, storage, user_id)
    if not notify:
        context.notifier = None
        context.alert_service = None

    result = run_refresh(context)
    print_feed(result.signals)

    for notification in result.notifications + result.alert_notifications:
        print(f"[{notification.urgency.upper()}] {notification.title}: {notification.message[:80]}")

    if related:
        echo = config.get("echo") or {}
        group_by = echo.get("group_by", "topic")
        if group_by not in GROUP_BY_OPTIONS:
            logger.warning(f"Unknown echo group_by '{group_by}', using topic")
            group_by = "topic"
        target = next((s for s in result.signals if s.id == related), None)
        if target is None:
            logger.error(f"Signal {related} is not in the current feed")
            return 1
        matches = find_related(
            target,
            result.signals,
            group_by,
            context.profile.custom_keywords,
            int(echo.get("max_results", 3)),
        )
        print(f"\n{len(matches)} related articles for: {target.title}")
        print_feed(matches)
    return 0


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Personalized signal feed with interest notifications and custom alerts"
    )
    parser.add_argument(
        "--config",
        default="config.yaml",
        help="Path to config YAML file (default: config.yaml)",
    )
    parser.add_argument(
        "--user",
        help="User id to refresh for (default: app.user_id from config)",
    )
    parser.add_argument(
        "--alert",
        metavar="TEXT",
        help='Create a custom alert from free text, e.g. "notify me when Apple launches a product"',
    )
    parser.add_argument(
        "--related",
        metavar="SIGNAL_ID",
        help="Print related articles for a signal in the refreshed feed",
    )
    parser.add_argument(
        "--no-notify",
        action="store_true",
        help="Skip notification generation and custom alert matching",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--log-file",
        help="Path to log file",
    )

    args = parser.parse_args()

    setup_logging(verbose=args.verbose, log_file=args.log_file)

    try:
        config = load_config(args.config)
    except FileNotFoundError as e:
        logging.error(f"Configuration error: {e}")
        sys.exit(1)
    except Exception as e:
        logging.error(f"Error loading config: {e}")
        sys.exit(1)

    try:
        if args.alert:
            storage = Storage(config.get("app", {}).get("db_path", "data/signals.sqlite"))
            user_id = args.user or config.get("app", {}).get("user_id") or "local"
            sys.exit(create_alert_from_text(storage, user_id, args.alert))
        sys.exit(run_once(config, user_id=args.user, notify=not args.no_notify, related=args.related))
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        sys.exit(0)
    except Exception as e:
        logging.exception(f"Error during execution: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
