#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys
import time


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fake job for pjobs integration tests")
    parser.add_argument("--stdout-lines", type=int, default=0)
    parser.add_argument("--stderr-lines", type=int, default=0)
    parser.add_argument("--sleep", type=float, default=0.0)
    parser.add_argument("--exit", dest="exit_code", type=int, default=0)
    parser.add_argument("--long-line", type=int, default=0)
    parser.add_argument("--no-trailing-newline", action="store_true")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    total = max(args.stdout_lines, args.stderr_lines)
    for idx in range(total):
        if idx < args.stdout_lines:
            print(f"out-{idx}", flush=True)
        if idx < args.stderr_lines:
            print(f"err-{idx}", file=sys.stderr, flush=True)

    if args.long_line > 0:
        print("x" * args.long_line, flush=True)

    if args.no_trailing_newline:
        sys.stdout.write("tail-without-newline")
        sys.stdout.flush()

    if args.sleep > 0:
        time.sleep(args.sleep)
    return args.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
