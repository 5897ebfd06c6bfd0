"""
dbchat command line.

    dbchat ask "how many users signed up last week?"
    dbchat train --fresh
    dbchat add-docs --title "Billing" --file docs/billing.md
    dbchat status
    dbchat history --limit 20
    dbchat serve
"""
import argparse
import json
import sys
from typing import List, Optional

from dbchat.config import get_settings
from dbchat.core.log_utils import log_error, log_success
from dbchat.exceptions import DBChatError
from dbchat.query_pipeline import QueryPipeline, get_query_pipeline


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def cmd_ask(pipeline: QueryPipeline, args) -> int:
    if args.no_execute:
        sql = pipeline.generate_sql(args.question)
        print(sql)
        return 0

    result = pipeline.ask(args.question)
    print(f"SQL: {result.sql}")
    if not result.success:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1

    if result.message:
        print(result.message)
    else:
        _print_json(result.data)
        print(f"{result.count} rows in {result.execution_time}s")
    return 0


def cmd_train(pipeline: QueryPipeline, args) -> int:
    if args.show_schema:
        for name in pipeline.schema_extractor.get_filtered_tables():
            print(name)

    result = pipeline.train(fresh=args.fresh)
    print(f"Trained {result.tables_trained}/{result.total_tables} tables")
    for name, error in result.errors.items():
        print(f"  {name}: {error}", file=sys.stderr)
    return 0 if result.success else 1


def cmd_add_docs(pipeline: QueryPipeline, args) -> int:
    if args.file:
        with open(args.file, "r", encoding="utf-8") as f:
            content = f.read()
    else:
        content = args.content

    if not content or not content.strip():
        print("Documentation content is empty", file=sys.stderr)
        return 1

    chunks = pipeline.add_documentation(args.title, content)
    log_success("dbchat", f"Added '{args.title}' ({chunks} chunks)")
    return 0


def cmd_status(pipeline: QueryPipeline, args) -> int:
    _print_json({
        "provider": pipeline.get_provider(),
        "training": pipeline.get_training_status().model_dump(),
        "queries": pipeline.get_query_stats(),
    })
    return 0


def cmd_history(pipeline: QueryPipeline, args) -> int:
    for entry in pipeline.get_history(limit=args.limit):
        marker = "ok " if entry.status == "success" else "err"
        print(f"[{marker}] {entry.timestamp}  {entry.question}")
        if entry.sql:
            print(f"      {entry.sql}")
        if entry.error:
            print(f"      {entry.error}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dbchat", description="Ask your database questions in plain language")
    subparsers = parser.add_subparsers(dest="command", required=True)

    ask = subparsers.add_parser("ask", help="Answer a natural language question")
    ask.add_argument("question", help="Question to answer")
    ask.add_argument("--no-execute", action="store_true", help="Only print the generated SQL")
    ask.set_defaults(func=cmd_ask)

    train = subparsers.add_parser("train", help="Embed the current database schema")
    train.add_argument("--fresh", action="store_true", help="Clear existing training data first")
    train.add_argument("--show-schema", action="store_true", help="List the tables being trained")
    train.set_defaults(func=cmd_train)

    docs = subparsers.add_parser("add-docs", help="Add business documentation")
    docs.add_argument("--title", required=True, help="Documentation title")
    source = docs.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", help="Read content from a file")
    source.add_argument("--content", help="Content as a string")
    docs.set_defaults(func=cmd_add_docs)

    status = subparsers.add_parser("status", help="Show training and query statistics")
    status.set_defaults(func=cmd_status)

    history = subparsers.add_parser("history", help="Show recent questions")
    history.add_argument("--limit", "-l", type=int, default=20, help="Number of entries")
    history.set_defaults(func=cmd_history)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.set_defaults(func=None)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "serve":
        from dbchat.main import run
        run()
        return 0

    try:
        pipeline = get_query_pipeline(get_settings())
        return args.func(pipeline, args)
    except (DBChatError, OSError, ValueError) as e:
        log_error("dbchat", str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
