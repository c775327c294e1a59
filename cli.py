#!/usr/bin/env python3
import argparse
import json
import logging
import sys
from pathlib import Path

from local_docs_retrieval.app import DocsService, load_config
from local_docs_retrieval.errors import DocsError
from local_docs_retrieval.logging_utils import setup_logging
from local_docs_retrieval.utils.output import write_output

logger = logging.getLogger(__name__)


def _print_json(obj) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="local-docs-retrieval",
        description="Fetch, chunk and search HTML product documentation (online or local copies).",
    )
    sub = parser.add_subparsers(dest="cmd", required=True)

    # Global flags
    parser.add_argument("--config", type=str, default="config.yaml", help="YAML config file")
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable DEBUG logs (to stderr)."
    )
    parser.add_argument("--quiet", "-q", action="store_true", help="Reduce logs to WARN and above.")
    parser.add_argument("--log-json", action="store_true", help="Emit logs as JSON lines (stderr).")

    # -----------------------
    # ingest
    # -----------------------
    p_ing = sub.add_parser("ingest", help="Parse and index a folder of HTML pages")
    p_ing.add_argument("path", type=str, help="Folder with .html/.htm files")
    p_ing.add_argument("--version", type=str, default="local", help="Version label (default: local)")

    # -----------------------
    # search
    # -----------------------
    p_s = sub.add_parser("search", help="Search cached topics")
    p_s.add_argument("query", type=str)
    p_s.add_argument("--version", type=str, default=None, help="Only this version")
    p_s.add_argument("--section", type=str, default=None, help="Only this section")
    p_s.add_argument("--limit", type=int, default=10)
    p_s.add_argument(
        "--out", type=str, default=None, help="Write results to a file (infers format from extension)"
    )
    p_s.add_argument(
        "--format",
        type=str,
        default=None,
        choices=["json", "md", "txt", "html"],
        help="Output format (overrides --out extension)",
    )
    p_s.add_argument(
        "--save", type=str, default=None, help="Directory to auto-save results (default outputs/)"
    )

    # -----------------------
    # topic / related
    # -----------------------
    p_t = sub.add_parser("topic", help="Fetch one topic (cache first)")
    p_t.add_argument("topic_id", type=str, help="Topic id, or a full URL")
    p_t.add_argument("--version", type=str, default=None)
    p_t.add_argument("--max-chunks", type=int, default=3, help="0 returns every chunk")
    p_t.add_argument("--max-tokens", type=int, default=None, help="Token budget for returned chunks")

    p_r = sub.add_parser("related", help="Parent / prev / next / related links of a topic")
    p_r.add_argument("topic_id", type=str)
    p_r.add_argument("--version", type=str, default=None)

    # -----------------------
    # section / describe
    # -----------------------
    p_sec = sub.add_parser("section", help="List topics in a section")
    p_sec.add_argument("name", type=str)
    p_sec.add_argument("--version", type=str, default=None)
    p_sec.add_argument("--limit", type=int, default=50)

    sub.add_parser("describe", help="Show source kind, versions and sections")
    return parser


def main(argv=None):
    parser = _build_parser()
    args = parser.parse_args(argv)

    # ----- logging setup -----
    if args.verbose and args.quiet:
        print("Cannot use --verbose and --quiet together.", file=sys.stderr)
        sys.exit(2)
    if args.verbose:
        level = "DEBUG"
    elif args.quiet:
        level = "WARNING"
    else:
        level = None  # LOG_LEVEL env or config
    try:
        cfg = load_config(args.config)
    except DocsError as e:
        setup_logging(level=level, json_logs=args.log_json)
        logger.error("Configuration error: %s", e)
        sys.exit(2)
    setup_logging(level=level or cfg.log_level, json_logs=args.log_json)

    logger.debug("CLI args parsed: %s", vars(args))
    svc = DocsService(cfg)

    try:
        if args.cmd == "ingest":
            data_path = Path(args.path)
            logger.info("Starting ingest: %s", data_path.resolve())
            n = svc.ingest_path(data_path, version=args.version)
            print(f"Ingest complete. Topics: {n}")
            print(f"Cache dir: {Path(cfg.cache_dir).resolve()}")

        elif args.cmd == "search":
            svc.load_cached()
            results = svc.search(args.query, version=args.version, section=args.section, limit=args.limit)
            if args.out or args.save:
                target = write_output(
                    args.query, results, out_path=args.out, fmt=args.format, save_dir=args.save
                )
                print(f"[saved] {target}")
            if not results:
                print("No matching topics.")
            for i, r in enumerate(results, start=1):
                print(f"[{i}] {r.title} ({r.section}, {r.version}) score={r.score:g}")
                print(f"    {r.topic_id} | {r.url}")
                if r.summary:
                    print(f"    {r.summary}")

        elif args.cmd == "topic":
            is_url = args.topic_id.startswith(("http://", "https://"))
            topic = svc.get_topic(
                topic_id=None if is_url else args.topic_id,
                url=args.topic_id if is_url else None,
                version=args.version,
                max_chunks=args.max_chunks,
                max_tokens=args.max_tokens,
            )
            _print_json(topic.model_dump())

        elif args.cmd == "related":
            _print_json(svc.related_topics(args.topic_id, version=args.version).model_dump())

        elif args.cmd == "section":
            topics = svc.list_section_topics(args.name, version=args.version, limit=args.limit)
            _print_json([t.model_dump() for t in topics])

        elif args.cmd == "describe":
            svc.load_cached()
            _print_json(svc.describe().model_dump())

        else:
            parser.print_help()
    except DocsError as e:
        logger.debug("Command failed", exc_info=True)
        _print_json({"error": e.to_payload()})
        sys.exit(2)


if __name__ == "__main__":
    main()
