"""Print the dashboard payload (totals, monthly and category buckets) as JSON."""

from __future__ import annotations

import argparse
import getpass
import json
import sys

from finance_tracker import aggregation, config, context, storage, synth
from finance_tracker.errors import FinanceClientError


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--sample", action="store_true", help="use synthetic transactions instead of the API")
    parser.add_argument("--rows", type=int, default=synth.DEFAULT_ROWS)
    parser.add_argument("--seed", type=int, default=synth.DEFAULT_SEED)
    parser.add_argument("--email", help="account email for a live fetch")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = config.load_settings()
    config.configure_logging(settings.log_level)

    if args.sample:
        payload = aggregation.build_dashboard(synth.generate_transactions(rows=args.rows, seed=args.seed))
    else:
        if not args.email:
            print("--email is required unless --sample is given", file=sys.stderr)
            return 2
        services = context.build_services(settings, storage.MemoryStorage())
        try:
            services.sessions.login(args.email, getpass.getpass("Password: "))
            payload = aggregation.build_dashboard(services.transactions.all(), services.transactions.stats())
        except FinanceClientError as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 1
        finally:
            services.close()

    print(json.dumps(payload, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
