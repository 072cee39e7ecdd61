from __future__ import annotations

import argparse
import os


def add_runtime_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--host", default="0.0.0.0", help="Bind address.")
    parser.add_argument("--port", type=int, default=8000, help="Bind port.")
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Reload on code changes (overrides GBCITE_RELOAD).",
    )
    parser.add_argument(
        "--model",
        help="Chat model name (overrides GBCITE_LLM_MODEL).",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (overrides GBCITE_LOG_LEVEL).",
    )


def apply_runtime_overrides(args: argparse.Namespace) -> None:
    if getattr(args, "model", None):
        os.environ["GBCITE_LLM_MODEL"] = args.model
    if getattr(args, "log_level", None):
        os.environ["GBCITE_LOG_LEVEL"] = args.log_level
    if getattr(args, "reload", False):
        os.environ["GBCITE_RELOAD"] = "1"
