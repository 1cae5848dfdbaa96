from __future__ import annotations

import argparse


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="firestore-nlp",
        description="Operator tools for the Firestore NLP extension",
    )
    p.add_argument("--log-level", default="INFO", help="Python logging level (INFO, DEBUG, ...)")

    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser(
        "bootstrap-warehouse",
        help="Create the BigQuery dataset and task tables if missing",
    )

    analyze = sub.add_parser(
        "analyze",
        help="Run the configured NLP tasks on a text and print the merged result",
    )
    analyze.add_argument("--text", required=True, help="Text to analyze")
    analyze.add_argument(
        "--task",
        action="append",
        default=[],
        help="Task to run (repeatable, default from env TASKS)",
    )
    return p
