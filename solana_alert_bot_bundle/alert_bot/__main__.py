#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys

from solana_alert_bot_bundle.alert_bot.utils_exec import custom_json_encoder
from solana_alert_bot_bundle.solana_alert_bot import check_token, main_loop


def _parse_args(argv=None):
    p = argparse.ArgumentParser(description="Solana token trust & opportunity alert bot")
    p.add_argument("-c", "--config", dest="config", default=None,
                   help="Path to config.yaml (optional; will use AppData default if omitted)")
    p.add_argument("--once", action="store_true", help="Run a single scan cycle and exit")
    p.add_argument("--check", metavar="MINT", default=None,
                   help="Validate one token mint and print the alert as JSON")
    return p.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)
    if args.check:
        alert = check_token(args.check, args.config)
        if alert is None:
            print(f"Token {args.check} not found", file=sys.stderr)
            return 1
        print(json.dumps(alert.as_dict(), indent=2, default=custom_json_encoder, ensure_ascii=False))
        return 0
    main_loop(args.config, once=args.once)
    return 0


if __name__ == "__main__":
    sys.exit(main())
