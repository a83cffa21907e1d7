"""Parse a payment instruction and execute it from the command line.

Examples:
    python -m micropay.cli.send "send 5 USDC to @alice" --user-id demo --trace-id t-1
    python -m micropay.cli.send "pay @bob 2.50" --dry-run
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from micropay.services.factories import build_payment_flow
from micropay.settings import get_settings


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Send a USDC micropayment from a plain-language instruction.")
    parser.add_argument("text", help="Instruction, e.g. 'send 5 USDC to @alice'.")
    parser.add_argument("--user-id", default=None, help="Caller identity used in the idempotency key.")
    parser.add_argument("--trace-id", default=None, help="Client trace id; reuse it when retrying a submission.")
    parser.add_argument("--dry-run", action="store_true", help="Only print the parsed intent.")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    _configure_logging(settings.log_level)

    flow = build_payment_flow(settings)
    if args.dry_run:
        try:
            intent = flow.extractor.extract(args.text)
        except ValueError as exc:
            print(json.dumps({"success": False, "error": str(exc)}))
            return 2
        print(json.dumps({"intent": intent.to_payload(), "actionable": intent.is_actionable()}, indent=2))
        return 0

    outcome = flow.handle_text(args.text, user_id=args.user_id, trace_id=args.trace_id)
    flow.executor.audit.flush(timeout=5.0)
    print(json.dumps(outcome.to_response(), indent=2, default=str))
    return 0 if outcome.success else 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
