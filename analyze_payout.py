"""
Audit realised payouts of recently finished sabong matches.

For each match the pool is rebuilt from the bet rows and the pari-mutuel
odds are compared with the payout/stake ratio of a winning bet. Matches
whose payouts only line up with a house-free pool are flagged.

Usage:
  python analyze_payout.py
  python analyze_payout.py --limit 20
  python analyze_payout.py --db-path path/to/sabong.db --tolerance 0.005
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import List

import config
from repositories.match_repository import MatchRepository
from services.payout_audit_service import STATUS_DISCREPANCY, PayoutAuditService, format_report


def main(argv: List[str]) -> int:
    parser = argparse.ArgumentParser(description="Compare paid odds with the pari-mutuel formula.")
    parser.add_argument("--db-path", default=config.DB_PATH, help="Path to SQLite DB (default: DB_PATH or sabong.db)")
    parser.add_argument("--limit", type=int, default=config.PAYOUT_AUDIT_MATCH_LIMIT, help="Number of recent finished matches to audit")
    parser.add_argument("--tolerance", type=float, default=config.PAYOUT_AUDIT_TOLERANCE, help="Allowed odds difference before flagging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not os.path.exists(args.db_path):
        print(f"ERROR: Database file not found: {args.db_path}", file=sys.stderr)
        return 2
    if args.limit <= 0:
        print("ERROR: --limit must be positive", file=sys.stderr)
        return 2

    service = PayoutAuditService(
        MatchRepository(args.db_path), tolerance=args.tolerance, default_limit=args.limit
    )
    reports = service.audit_recent(args.limit)
    if not reports:
        print("No finished matches found.")
        return 0

    print(f"Analyzing last {len(reports)} finished matches...")
    for report in reports:
        print("-" * 50)
        for line in format_report(report):
            print(line)
    print("-" * 50)

    flagged = sum(1 for r in reports if r["status"] == STATUS_DISCREPANCY)
    print(f"Matches with discrepancies: {flagged}")
    return 1 if flagged else 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
