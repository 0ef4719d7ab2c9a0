from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import replace

import requests

from funding_hub.config import AppConfig, ConfigError, load_config
from funding_hub.consolidation import ConsolidationError
from funding_hub.logging_config import setup_logging
from funding_hub.notifiers import ButtondownNotifier, DeliveryError, should_send_digest
from funding_hub.service import FundingPipelineService, PipelineError
from funding_hub.store import JsonSnapshotStore
from funding_hub.utils.datetime_utils import parse_datetime_utc
from funding_hub.verification import VerificationError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="funding-hub",
        description="Collect UK academic funding opportunities and publish a daily digest.",
    )
    parser.add_argument(
        "-c",
        "--config",
        default="config.yaml",
        help="Path to config YAML file (default: config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        help="Override config log level (e.g. INFO, DEBUG)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    update = subparsers.add_parser("update", help="Run the pipeline and write the dataset")
    update.add_argument(
        "--max-per-source",
        type=int,
        help="Override fetch.max_per_source for this run",
    )
    dry_run = subparsers.add_parser(
        "dry-run", help="Run the pipeline and print the digest without saving"
    )
    for subparser in (update, dry_run):
        subparser.add_argument(
            "--now",
            help="Run as if at this ISO timestamp (UTC assumed when no offset is given)",
        )

    send = subparsers.add_parser("send-digest", help="Send the latest digest via Buttondown")
    send.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the digest instead of sending it",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        app_config = load_config(args.config)
    except ConfigError as exc:
        print(f"Config error: {exc}", file=sys.stderr)
        return 2

    log_level = args.log_level or app_config.log_level
    setup_logging(log_level)

    store = JsonSnapshotStore(app_config.output.dir)

    if args.command == "send-digest":
        return _send_digest(app_config, store, dry_run=args.dry_run)

    if args.command == "update" and args.max_per_source is not None:
        if args.max_per_source < 1:
            parser.error("--max-per-source must be >= 1")
        app_config.fetch = replace(app_config.fetch, max_per_source=args.max_per_source)

    now = None
    if args.now:
        now = parse_datetime_utc(args.now)
        if now is None:
            parser.error(f"--now is not a valid timestamp: {args.now}")

    service = FundingPipelineService(app_config)
    try:
        result = service.run_once(store.load_previous(), now=now)
    except (PipelineError, VerificationError, ConsolidationError) as exc:
        logger.error("Failed to update funding data: %s", exc)
        return 1

    if args.command == "dry-run":
        print(result.digest.subject)
        print("")
        print(result.digest.markdown)
        return 0

    store.save(result.dataset)
    logger.info("Digest subject: %s", result.digest.subject)
    return 0


def _send_digest(app_config: AppConfig, store: JsonSnapshotStore, *, dry_run: bool) -> int:
    dataset = store.load_latest_payload()
    if dataset is None:
        logger.error("No dataset found at %s; run `update` first", store.latest_path)
        return 1

    digest = dataset.get("digest") or {}
    subject = str(digest.get("subject") or "UK Funding Daily Brief")
    body = str(digest.get("markdown") or "")

    if not should_send_digest(dataset, send_empty=app_config.delivery.send_empty):
        logger.info("No new or updated items; skipping digest send")
        return 0

    if dry_run:
        print(subject)
        print("")
        print(body)
        return 0

    api_key = os.getenv(app_config.delivery.api_key_env_var, "").strip()
    if not api_key:
        logger.error(
            "Missing Buttondown API key in environment variable %s",
            app_config.delivery.api_key_env_var,
        )
        return 2

    notifier = ButtondownNotifier(
        api_key,
        newsletter_id=app_config.delivery.newsletter_id,
        draft_only=app_config.delivery.draft_only,
    )
    try:
        draft_id = notifier.send(subject, body)
    except (DeliveryError, requests.RequestException) as exc:
        logger.error("Digest delivery failed: %s", exc)
        return 1

    logger.info("Digest %s: %s", "drafted" if app_config.delivery.draft_only else "sent", draft_id)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
