"""Admin CLI: list stored results, check an access code, create the shared bin, validate the bank."""
import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path

from db import SCHEMA_SQL, backend_name, get_store_uncached
from mockexam.errors import MockExamError, QuestionBankError
from mockexam.gate import normalize_code
from mockexam.models import Track
from mockexam.question_bank import DEFAULT_BANK_PATH, QuestionBank, active_question_set
from mockexam.settings import ExamSettings

logger = logging.getLogger(__name__)


def format_result_row(r) -> str:
    when = datetime.fromtimestamp(r.timestamp / 1000).strftime("%Y-%m-%d %H:%M")
    return (
        f"{r.id:<12}  {when}  {r.access_code:<10}  {r.track.short_name:<11}  "
        f"{r.score:>3}/{r.total_possible:<3} {r.percentage:>3}%  {r.name} ({r.course})"
    )


async def list_results(limit: int | None = None) -> int:
    async with get_store_uncached() as store:
        results = await store.list_all()
    if limit:
        results = results[:limit]
    if not results:
        print("No results stored yet.")
        return 0
    for r in results:
        print(format_result_row(r))
    print(f"{len(results)} result(s)")
    return 0


async def check_code(code: str) -> int:
    code = normalize_code(code)
    settings = ExamSettings.from_env()
    if code not in settings.allowed_codes:
        print(f"{code}: not an issued code")
        return 1
    async with get_store_uncached() as store:
        used = await store.is_code_used(code)
    print(f"{code}: {'USED' if used else 'available'}")
    return 0


async def create_bin() -> int:
    if backend_name() != "jsonbin":
        print("create-bin only applies to STORE_BACKEND=jsonbin")
        return 1
    async with get_store_uncached() as store:
        bin_id = await asyncio.to_thread(store.create_bin)
    print(f"Created bin {bin_id}")
    print(f"Set JSONBIN_BIN_ID={bin_id} on every device")
    return 0


def validate_bank(path: Path | None) -> int:
    bank = QuestionBank.from_jsonl(path)
    for subject, n in bank.subject_counts().items():
        print(f"{subject:<16} {n}")
    for track in Track:
        print(f"{track.value}: {len(active_question_set(bank, track))} active questions")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Mock exam admin tools.")
    sub = parser.add_subparsers(dest="command", required=True)

    p_results = sub.add_parser("results", help="List stored results, newest first")
    p_results.add_argument("--limit", type=int, default=None, help="Show at most N results")

    p_check = sub.add_parser("check-code", help="Report whether an access code has been used")
    p_check.add_argument("code")

    sub.add_parser("create-bin", help="Create an empty JSONBin bin for the shared store")
    sub.add_parser("schema", help="Print the SQL for the Supabase store table")

    p_bank = sub.add_parser("validate-bank", help="Parse the question bank and print counts")
    p_bank.add_argument(
        "jsonl",
        nargs="?",
        default=None,
        help=f"Path to .jsonl (default: {DEFAULT_BANK_PATH})",
    )

    args = parser.parse_args(argv)
    try:
        if args.command == "results":
            return asyncio.run(list_results(args.limit))
        if args.command == "check-code":
            return asyncio.run(check_code(args.code))
        if args.command == "create-bin":
            return asyncio.run(create_bin())
        if args.command == "schema":
            print(SCHEMA_SQL)
            return 0
        return validate_bank(Path(args.jsonl) if args.jsonl else None)
    except QuestionBankError as e:
        logger.error("Question bank invalid: %s", e)
        return 2
    except (MockExamError, ValueError) as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    sys.exit(main())
