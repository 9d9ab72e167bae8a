import argparse
import json
import sys
from pathlib import Path

from . import __version__, config
from .billing import handle_subscription_event
from .database import Role, init_database, session_scope
from .env import load_env
from .errors import InvalidInput, TradeQuoteError
from .jobs import create_job, get_job, list_jobs
from .logger import get_logger
from .profiles import get_profile, register_user, update_profile, verify_email
from .quote_comparison import status_label
from .quotes import list_quotes, recompute_job_quotes, submit_quote
from .retry import RetryError
from .seed import seed_demo
from .stats import admin_list_jobs, admin_stats, audit_jobs
from .transaction import run_in_transaction
from .trust_score import TrustScoreCalculator


BUSY_EXIT_CODE = 75


def _db_path(args: argparse.Namespace) -> Path:
    return Path(args.db) if args.db else config.database_path()


def _read_json(path_str: str) -> dict:
    input_path = Path(path_str)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")
    with input_path.open("r", encoding="utf-8") as f:
        return json.load(f)


def _fmt_money(value) -> str:
    return "-" if value is None else f"{value:,.2f}"


def cmd_init_db(args: argparse.Namespace) -> None:
    db_path = _db_path(args)
    init_database(db_path)
    print(f"Database ready: {db_path}")


def cmd_seed(args: argparse.Namespace) -> None:
    db_path = _db_path(args)
    init_database(db_path)
    counts = run_in_transaction(db_path, seed_demo)
    print(f"Seeded users={counts['users']} jobs={counts['jobs']} quotes={counts['quotes']}")


def cmd_add_user(args: argparse.Namespace) -> None:
    def work(session):
        user = register_user(session, args.email, name=args.name, role=Role(args.role))
        if args.subscribed:
            user.is_subscribed = True
        return user.id

    user_id = run_in_transaction(_db_path(args), work)
    print(f"User: {user_id}")


def cmd_post_job(args: argparse.Namespace) -> None:
    data = _read_json(args.input) if args.input else {
        "title": args.title,
        "description": args.description,
        "category": args.category,
        "location": args.location,
        "budget": args.budget,
    }
    data = {k: v for k, v in data.items() if v is not None}
    job = run_in_transaction(_db_path(args), create_job, args.user, data)
    print(f"Job: {job.id}")


def cmd_list_jobs(args: argparse.Namespace) -> None:
    with session_scope(_db_path(args)) as session:
        page = list_jobs(
            session,
            category=args.category,
            location=args.location,
            page=args.page,
            limit=args.limit,
        )
        jobs = page["jobs"]
        pagination = page["pagination"]
        if not jobs:
            print("No jobs found.")
            return
        print(f"Page {pagination['page']}/{pagination['pages']} ({pagination['total']} jobs):\n")
        for job in jobs:
            print(f"ID: {job.id}")
            print(f"  Title: {job.title}")
            print(f"  Category: {job.category}")
            print(f"  Location: {job.location}")
            print(f"  Budget: {_fmt_money(job.budget)}")
            print(f"  Average quote: {_fmt_money(job.average_quote)} ({len(job.quotes)} quotes)")
            print()


def cmd_show_job(args: argparse.Namespace) -> None:
    with session_scope(_db_path(args)) as session:
        job = get_job(session, args.job)
        print(f"ID: {job.id}")
        print(f"  Title: {job.title}")
        print(f"  Status: {job.status.value}")
        print(f"  Budget: {_fmt_money(job.budget)}")
        print(f"  Average quote: {_fmt_money(job.average_quote)}")
        print(f"  Quotes: {len(job.quotes)}")
        for quote in job.quotes:
            pro = quote.pro
            who = pro.company_name or pro.name or pro.email
            print(
                f"   - {_fmt_money(quote.amount)} from {who} "
                f"(trust {pro.trust_score}): {status_label(quote.status)}"
            )


def cmd_quote(args: argparse.Namespace) -> None:
    quote = run_in_transaction(
        _db_path(args), submit_quote, args.job, args.pro, args.amount, args.comment
    )
    print(f"Quote: {quote.id}")
    print(f"Status: {status_label(quote.status)}")


def cmd_quotes(args: argparse.Namespace) -> None:
    with session_scope(_db_path(args)) as session:
        quotes = list_quotes(session, job_id=args.job, pro_id=args.pro)
        if not quotes:
            print("No quotes found.")
            return
        for quote in quotes:
            print(
                f"{quote.id} job={quote.job_id} pro={quote.pro_id} "
                f"amount={_fmt_money(quote.amount)} status={quote.status.value}"
            )


def cmd_recompute(args: argparse.Namespace) -> None:
    result = run_in_transaction(_db_path(args), recompute_job_quotes, args.job)
    print(f"Average: {_fmt_money(result.updated_average)}")
    for quote_id, status in result.status_of.items():
        print(f" - {quote_id}: {status.value}")


def cmd_profile(args: argparse.Namespace) -> None:
    fields = {}
    for name in ("name", "company_name", "trade_category", "description", "qualifications", "insurance_doc"):
        value = getattr(args, name)
        if value is not None:
            fields[name] = value

    def work(session):
        if args.verify_email:
            verify_email(session, args.user)
        user = update_profile(session, args.user, **fields) if fields else get_profile(session, args.user)
        return TrustScoreCalculator().score(user)

    result = run_in_transaction(_db_path(args), work)
    print(f"Trust score: {result.trust_score} ({result.label})")
    print(f"Profile completion: {result.profile_completion}%")


def cmd_webhook(args: argparse.Namespace) -> None:
    event = _read_json(args.input)
    applied = run_in_transaction(_db_path(args), handle_subscription_event, event)
    print("applied" if applied else "ignored")


def cmd_stats(args: argparse.Namespace) -> None:
    with session_scope(_db_path(args)) as session:
        stats = admin_stats(session, args.user)
    for key, value in stats.items():
        print(f"{key}: {value}")


def cmd_admin_jobs(args: argparse.Namespace) -> None:
    with session_scope(_db_path(args)) as session:
        jobs = admin_list_jobs(session, args.user)
    if not jobs:
        print("No jobs found.")
        return
    for job in jobs:
        print(
            f"{job['id']} [{job['status']}] {job['title']} ({job['category']}) "
            f"quotes={job['quote_count']} created={job['created_at']:%Y-%m-%d}"
        )


def cmd_audit(args: argparse.Namespace) -> None:
    with session_scope(_db_path(args)) as session:
        mismatches = audit_jobs(session)
    if not mismatches:
        print("All job averages and quote statuses are consistent.")
        return
    print(f"Found {len(mismatches)} mismatches:")
    for m in mismatches:
        print(f" - {m['job_id']} {m['field']}: stored={m['stored']} expected={m['expected']}")
    raise SystemExit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tradequote", description="TradeQuote marketplace CLI")
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--db", help="Path to SQLite database (default: $TRADEQUOTE_DB or data/tradequote.db)")

    subparsers = parser.add_subparsers(dest="command")

    ini = subparsers.add_parser("init-db", help="Create database tables")
    ini.set_defaults(func=cmd_init_db)

    sd = subparsers.add_parser("seed", help="Load demo users, jobs and quotes")
    sd.set_defaults(func=cmd_seed)

    usr = subparsers.add_parser("add-user", help="Register a user")
    usr.add_argument("--email", required=True)
    usr.add_argument("--name")
    usr.add_argument("--role", default="USER", choices=[r.value for r in Role])
    usr.add_argument("--subscribed", action="store_true", help="Mark as subscribed")
    usr.set_defaults(func=cmd_add_user)

    pj = subparsers.add_parser("post-job", help="Post a job")
    pj.add_argument("--user", required=True, help="Owner user id")
    pj.add_argument("--input", help="Job JSON (overrides field flags)")
    pj.add_argument("--title")
    pj.add_argument("--description")
    pj.add_argument("--category")
    pj.add_argument("--location")
    pj.add_argument("--budget", type=float)
    pj.set_defaults(func=cmd_post_job)

    lj = subparsers.add_parser("list-jobs", help="List jobs, newest first")
    lj.add_argument("--category")
    lj.add_argument("--location", help="Case-insensitive substring")
    lj.add_argument("--page", type=int, default=1)
    lj.add_argument("--limit", type=int)
    lj.set_defaults(func=cmd_list_jobs)

    sj = subparsers.add_parser("show-job", help="Show a job with its quotes")
    sj.add_argument("--job", required=True)
    sj.set_defaults(func=cmd_show_job)

    qt = subparsers.add_parser("quote", help="Submit a quote for a job")
    qt.add_argument("--job", required=True)
    qt.add_argument("--pro", required=True, help="Submitting professional's user id")
    qt.add_argument("--amount", required=True, type=float)
    qt.add_argument("--comment")
    qt.set_defaults(func=cmd_quote)

    lq = subparsers.add_parser("quotes", help="List quotes by job and/or professional")
    lq.add_argument("--job")
    lq.add_argument("--pro")
    lq.set_defaults(func=cmd_quotes)

    rc = subparsers.add_parser("recompute", help="Recompute a job's average and quote statuses")
    rc.add_argument("--job", required=True)
    rc.set_defaults(func=cmd_recompute)

    pf = subparsers.add_parser("profile", help="Edit profile fields and show scores")
    pf.add_argument("--user", required=True)
    pf.add_argument("--name")
    pf.add_argument("--company-name", dest="company_name")
    pf.add_argument("--trade-category", dest="trade_category")
    pf.add_argument("--description")
    pf.add_argument("--qualifications")
    pf.add_argument("--insurance-doc", dest="insurance_doc")
    pf.add_argument("--verify-email", action="store_true")
    pf.set_defaults(func=cmd_profile)

    wh = subparsers.add_parser("webhook", help="Apply a payment provider event from a JSON file")
    wh.add_argument("--input", required=True)
    wh.set_defaults(func=cmd_webhook)

    st = subparsers.add_parser("stats", help="Marketplace totals (admin only)")
    st.add_argument("--user", required=True, help="Admin user id")
    st.set_defaults(func=cmd_stats)

    aj = subparsers.add_parser("admin-jobs", help="All jobs with quote counts (admin only)")
    aj.add_argument("--user", required=True, help="Admin user id")
    aj.set_defaults(func=cmd_admin_jobs)

    au = subparsers.add_parser("audit", help="Check stored averages and statuses against a recompute")
    au.set_defaults(func=cmd_audit)

    return parser


def main(argv=None):
    # Load .env if present (TRADEQUOTE_DB, TRADEQUOTE_LOG_LEVEL, etc.)
    load_env()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if not hasattr(args, "func"):
        parser.print_help()
        return

    try:
        args.func(args)
    except InvalidInput as e:
        print(f"Invalid: {e}", file=sys.stderr)
        for err in e.errors:
            print(f" - {err}", file=sys.stderr)
        raise SystemExit(e.exit_code)
    except TradeQuoteError as e:
        get_logger().error("Command failed", command=args.command, error=str(e), kind=type(e).__name__)
        print(f"{type(e).__name__}: {e}", file=sys.stderr)
        raise SystemExit(e.exit_code)
    except RetryError as e:
        get_logger().error("Command gave up after retries", command=args.command, error=str(e))
        print(f"Database busy: {e}", file=sys.stderr)
        raise SystemExit(BUSY_EXIT_CODE)


if __name__ == "__main__":
    main()
