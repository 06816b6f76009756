"""
CLI entry point — argument parsing and command dispatch.
"""

import argparse
import json
import sys

from .client import DEFAULT_HOST, ScrapboxClient, ScrapboxAPIError
from .cli_display import format_stats, setup_logger
from .config import Config
from .metrics import log_patch_metric, read_patch_stats
from .patching.errors import PatchError


def _read_stdin() -> str:
    if sys.stdin is None or sys.stdin.isatty():
        return ""
    return sys.stdin.read()


def _read_input(text: str | None, path: str | None) -> str:
    """Inline text, else file contents, else piped stdin."""
    if path:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    if text:
        return text
    return _read_stdin()


def _require(name: str, value):
    if not value:
        print(f"Missing required: {name}", file=sys.stderr)
        sys.exit(1)
    return value


def _bool_arg(value: str) -> bool:
    return str(value).lower() != "false"


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("title", nargs="?", default=None,
                        help="Page title (same as --page)")
    common.add_argument("--project", default=None,
                        help="Project name (or SCRAPBOX_PROJECT / COSENSE_PROJECT)")
    common.add_argument("--page", "--title", dest="page", default=None,
                        help="Page title")
    common.add_argument("--sid", default=None,
                        help="connect.sid cookie (or SCRAPBOX_SID / COSENSE_SID)")
    common.add_argument("--host", default=None,
                        help=f"Default: {DEFAULT_HOST} (or SCRAPBOX_HOST / COSENSE_HOST)")
    common.add_argument("--headless", type=_bool_arg, default=None,
                        help="Run the browser headless (default: true)")
    common.add_argument("--config", default=None,
                        help="Path to .scrapbox-skill.yaml config file")
    common.add_argument("--verbose", action="store_true",
                        help="Echo log output to stderr")

    parser = argparse.ArgumentParser(
        prog="scrapbox-skill",
        description="Scrapbox/Cosense CLI (Playwright)",
    )
    sub = parser.add_subparsers(dest="command", metavar="command")

    sub.add_parser("read", parents=[common], help="Print a page's text")
    sub.add_parser("read-json", parents=[common], help="Print a page's JSON")

    p_list = sub.add_parser("list", parents=[common], help="List page titles")
    p_list.add_argument("--limit", type=int, default=100)
    p_list.add_argument("--skip", type=int, default=0)
    p_list.add_argument("--json", action="store_true", help="Output JSON")

    p_append = sub.add_parser("append", parents=[common],
                              help="Append text to a page")
    p_append.add_argument("--body", default=None, help="Body to append")
    p_append.add_argument("--body-file", default=None, help="Read body from file")
    p_append.add_argument("--wait", type=int, default=None,
                          help="Wait after open in ms (default: 1500)")

    p_patch = sub.add_parser("patch", parents=[common],
                             help="Apply a unified diff to a page")
    p_patch.add_argument("--diff", default=None, help="Unified diff text")
    p_patch.add_argument("--diff-file", default=None, help="Unified diff file")
    p_patch.add_argument("--fuzz", type=int, default=None,
                         help="Mismatched context lines allowed per hunk (default 0)")
    p_patch.add_argument("--check-updated", action="store_true",
                         help="Abort if the page was updated before patching")
    p_patch.add_argument("--dry-run", action="store_true",
                         help="Do not edit; output patched text")
    p_patch.add_argument("--wait", type=int, default=None,
                         help="Wait after open and after editing in ms (default: 1500)")
    p_patch.add_argument("--settle", type=int, default=None,
                         help="Pause after each line edit in ms (default: 100)")

    p_stats = sub.add_parser("stats", parents=[common],
                             help="Summarise recent patch runs")
    p_stats.add_argument("--last", type=int, default=50,
                         help="Number of recent runs to include")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    cfg = Config.load(args.config)
    log = setup_logger(cfg.LOG_DIR, verbose=args.verbose)

    if args.command == "stats":
        print(format_stats(read_patch_stats(cfg.METRICS_FILE, last_n=args.last)))
        return 0

    project = _require("project", args.project or cfg.PROJECT)
    headless = cfg.HEADLESS if args.headless is None else args.headless

    client = ScrapboxClient(
        project=project,
        host=args.host or cfg.HOST,
        sid=args.sid or cfg.SID or None,
        headless=headless,
        timeout=cfg.REQUEST_TIMEOUT,
    )
    try:
        return _dispatch(args, cfg, client)
    except (PatchError, ScrapboxAPIError) as exc:
        log.error("%s failed: %s", args.command, exc)
        print(str(exc), file=sys.stderr)
        return 1
    except Exception as exc:
        log.exception("%s failed", args.command)
        print(str(exc) or type(exc).__name__, file=sys.stderr)
        return 1
    finally:
        client.close()


def _dispatch(args: argparse.Namespace, cfg: Config, client: ScrapboxClient) -> int:
    if args.command == "list":
        data = client.list_pages(limit=args.limit, skip=args.skip)
        if args.json:
            sys.stdout.write(json.dumps(data, indent=2, ensure_ascii=False))
        else:
            for page in data.get("pages", []):
                print(page.get("title", ""))
        return 0

    title = _require("page", args.page or args.title)

    if args.command == "read":
        sys.stdout.write(client.read_text(title))
        return 0

    if args.command == "read-json":
        sys.stdout.write(json.dumps(client.read_json(title), indent=2, ensure_ascii=False))
        return 0

    if args.command == "append":
        body = _read_input(args.body, args.body_file)
        if not body:
            print("Missing body (use --body / --body-file / stdin).", file=sys.stderr)
            return 1
        wait_ms = cfg.WAIT_MS if args.wait is None else args.wait
        client.append(title, body, wait_ms=wait_ms)
        return 0

    # patch
    diff_text = _read_input(args.diff, args.diff_file)
    if not diff_text:
        print("Missing diff (use --diff / --diff-file / stdin).", file=sys.stderr)
        return 1
    try:
        result = client.patch(
            title,
            diff_text,
            fuzz=cfg.FUZZ if args.fuzz is None else args.fuzz,
            check_staleness=args.check_updated,
            wait_ms=cfg.WAIT_MS if args.wait is None else args.wait,
            settle_delay_ms=cfg.SETTLE_DELAY_MS if args.settle is None else args.settle,
            dry_run=args.dry_run,
        )
    finally:
        if client.last_report is not None:
            log_patch_metric(client.last_report.as_metric(), cfg.METRICS_FILE)

    if args.dry_run and isinstance(result, str):
        sys.stdout.write(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
