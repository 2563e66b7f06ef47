#!/usr/bin/env python
"""Idempotent seed script for the repair status enumeration.

Usage:
    python backend/scripts/seed_statuses.py               # seed normally
    python backend/scripts/seed_statuses.py --show        # print statuses and their allowed next statuses
    python backend/scripts/seed_statuses.py --dry-run     # run logic then rollback (no DB changes)
    python backend/scripts/seed_statuses.py --validate    # exit 2 if stored rows drift from the fixed enumeration
"""
from __future__ import annotations
import os, sys, argparse, textwrap
from sqlalchemy import select

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from relayfix import create_app, get_db  # type: ignore
from relayfix.models.base import Base
from relayfix.models.repair_status import RepairStatus, STATUS_ROWS
from relayfix.services.lifecycle import allowed_targets
from relayfix.services.statuses import ensure_repair_statuses
import relayfix.models.repair_request  # noqa: F401
import relayfix.models.handoff_code  # noqa: F401
import relayfix.models.notification  # noqa: F401
import relayfix.models.audit  # noqa: F401


def parse_args():
    p = argparse.ArgumentParser(
        description="Seed repair statuses",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed normally: seed_statuses.py\n  dry run: seed_statuses.py --dry-run\n  show: seed_statuses.py --show\n""")
    )
    p.add_argument('--show', action='store_true', help='Print statuses after seeding')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    p.add_argument('--validate', action='store_true', help='Check stored ids/codes against the fixed enumeration; exits non-zero on drift')
    return p.parse_args()


def find_drift(session):
    expected = {sid: code for sid, code, *_ in STATUS_ROWS}
    problems = []
    for s in session.execute(select(RepairStatus)).scalars():
        if s.id not in expected:
            problems.append(f"Unknown status id {s.id} ({s.code})")
        elif expected[s.id] != s.code:
            problems.append(f"Status id {s.id} is '{s.code}', expected '{expected[s.id]}'")
    return problems


def print_statuses(session):
    rows = session.execute(select(RepairStatus).order_by(RepairStatus.id)).scalars().all()
    if not rows:
        print("[INFO] No statuses present.")
        return
    code_w = max(len(r.code) for r in rows)
    print(f"{'Id'.rjust(3)} | {'Code'.ljust(code_w)} | Next")
    print('-' * (code_w + 40))
    for r in rows:
        print(f"{str(r.id).rjust(3)} | {r.code.ljust(code_w)} | {', '.join(allowed_targets(r.code)) or '(terminal)'}")


def main():
    args = parse_args()
    app = create_app({'NOTIFICATION_WORKER': False})
    with app.app_context():
        session = get_db()
        # Lightweight fallback if migrations not run yet; in real env prefer alembic upgrade
        Base.metadata.create_all(session.get_bind(), checkfirst=True)
        created = ensure_repair_statuses(session)
        if args.validate:
            problems = find_drift(session)
            if problems:
                print('\n[VALIDATION] FAIL:')
                for p in problems:
                    print(' -', p)
                session.rollback()
                sys.exit(2)
            print('[VALIDATION] OK: stored statuses match the enumeration.')
        if args.dry_run:
            session.rollback()
            print(f"[DRY-RUN] (rolled back) Statuses would create: {created}")
        else:
            session.commit()
            print(f"[DONE] Statuses created: {created}")
        if args.show:
            print_statuses(session)


if __name__ == '__main__':
    main()
