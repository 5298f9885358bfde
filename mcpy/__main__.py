import argparse
import functools
import logging
import os
import sys
from typing import IO, Callable, List, Optional

from mcpy.cat import cat_url
from mcpy.clients.client import Client
from mcpy.compare import ComparePolicy
from mcpy.config import Config, ConfigError
from mcpy.copy import CopyOptions, CopyOutcome, CopyReport, CopyResult, copy, mirror
from mcpy.diff import DiffKind, do_diff
from mcpy.exceptions import McError
from mcpy.listing import do_list, entry_json, format_entry
from mcpy.share import ShareHistory, parse_expiry, share_download, share_upload, upload_command
from mcpy.storage import client_from_url, is_recursive, parse_url, strip_recursive

DEFAULT_CONFIG_PATH = "~/.mcpy.toml"

log = logging.getLogger("mcpy")


class Exit(Exception):
    pass


def config_file_type(path: str) -> Optional[IO[bytes]]:
    """Custom FileType that doesn't error if default file doesn't exist."""
    default_config_path = os.path.expanduser(DEFAULT_CONFIG_PATH)
    if path == default_config_path and not os.path.exists(path):
        return None
    try:
        return open(path, "rb")
    except OSError as e:
        raise argparse.ArgumentTypeError(f"can't open '{path}': {e.strerror}")


def load_config(config_file: Optional[IO[bytes]]) -> Config:
    if config_file is None:
        return Config()
    try:
        with config_file:
            config = Config.from_file(config_file)
    except ConfigError as e:
        raise Exit(f"Configuration error: {e}")

    for warning in config.get_warnings():
        print(f"Warning: {warning}", file=sys.stderr)
    return config


def setup_logging(debug: bool, quiet: bool) -> None:
    level = logging.WARNING
    if debug:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def target_url(url: str) -> str:
    """Mark an existing local directory as a container with a trailing separator."""
    if is_recursive(url) or url.endswith(("/", os.sep)):
        return url
    parsed = parse_url(url)
    if parsed.is_filesystem and os.path.isdir(parsed.key):
        return url + os.sep
    return url


def _print_result(result: CopyResult) -> None:
    if result.outcome == CopyOutcome.COPIED and result.unit is not None:
        print(f"'{result.unit.source_url}' -> '{result.unit.target_url}'")


def _summarize(report: CopyReport) -> int:
    for result in report.listing_errors:
        print(f"mcpy: unable to list '{result.source}': {result.error}", file=sys.stderr)
    for result in report.failed:
        target = result.unit.target_url if result.unit is not None else result.source
        print(f"mcpy: failed to copy '{target}': {result.error}", file=sys.stderr)
    if report.ok:
        return 0
    total = len(report.copied) + len(report.skipped) + len(report.failed)
    print(
        f"mcpy: {len(report.failed)} of {total} objects failed, "
        f"{len(report.listing_errors)} sources could not be listed",
        file=sys.stderr,
    )
    return 1


def cmd_ls(args: argparse.Namespace, config: Config, factory: Callable[[str], Client]) -> int:
    status = 0
    urls = [config.expand(url) for url in args.urls]
    for url in urls:
        recursive = args.recursive or is_recursive(url)
        with factory(strip_recursive(url)) as client:
            for item in do_list(client, recursive, multi_source=len(urls) > 1):
                if item.error is not None:
                    print(f"mcpy: unable to list '{url}': {item.error}", file=sys.stderr)
                    status = 1
                    continue
                print(entry_json(item.entry) if args.json else format_entry(item.entry))
    return status


def cmd_cp(args: argparse.Namespace, config: Config, factory: Callable[[str], Client]) -> int:
    sources = [config.expand(url) for url in args.sources]
    target = target_url(config.expand(args.target))
    options = config.settings.copy_options()
    _apply_overrides(args, options)
    on_result = None if args.quiet else _print_result
    report = copy(sources, target, options, factory, on_result)
    return _summarize(report)


def cmd_mirror(args: argparse.Namespace, config: Config, factory: Callable[[str], Client]) -> int:
    source = config.expand(args.source)
    target = target_url(config.expand(args.target))
    options = config.settings.copy_options(mirror=True)
    _apply_overrides(args, options)
    if args.compare:
        options.compare = ComparePolicy.parse(args.compare)
    on_result = None if args.quiet else _print_result
    report = mirror(source, target, options, factory, on_result)
    return _summarize(report)


def cmd_diff(args: argparse.Namespace, config: Config, factory: Callable[[str], Client]) -> int:
    compare = ComparePolicy.parse(args.compare) if args.compare else config.settings.diff_compare
    status = 0
    for event in do_diff(
        config.expand(args.first),
        config.expand(args.second),
        recursive=args.recursive,
        compare=compare,
        verbose=args.verbose,
        client_factory=factory,
    ):
        if event.kind == DiffKind.ERROR:
            print(f"mcpy: {event}", file=sys.stderr)
            status = 1
        else:
            print(event)
    return status


def cmd_cat(args: argparse.Namespace, config: Config, factory: Callable[[str], Client]) -> int:
    out = sys.stdout.buffer
    for url in args.urls:
        cat_url(config.expand(url), out, factory)
    out.flush()
    return 0


def cmd_share(args: argparse.Namespace, config: Config, factory: Callable[[str], Client]) -> int:
    try:
        expiry = parse_expiry(args.expiry)
    except ValueError as e:
        raise Exit(str(e))
    history = ShareHistory(config.settings.share_history)
    history.prune()
    url = config.expand(args.url)

    if args.share_command == "download":
        record = share_download(url, expiry, history, factory)
        print(f"URL: {record.key}")
        print(f"Expire: {record.expiry}")
        print(f"Share: {record.share_url}")
        return 0

    record = share_upload(url, expiry, args.content_type, history, factory)
    print(f"URL: {record.key}")
    print(f"Expire: {record.expiry}")
    print(f"Share: {upload_command(record)}")
    return 0


def _apply_overrides(args: argparse.Namespace, options: CopyOptions) -> None:
    if args.workers is not None:
        options.workers = args.workers
    if args.retries is not None:
        options.retries = args.retries


def non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer '{value}'")
    if number < 0:
        raise argparse.ArgumentTypeError(f"'{value}' must not be negative")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcpy", description="copy, mirror and compare local folders and object storage"
    )

    default_config_path = os.path.expanduser(DEFAULT_CONFIG_PATH)

    parser.add_argument("--config", type=config_file_type, default=default_config_path)
    parser.add_argument("--debug", action="store_true", help="log every backend call")
    parser.add_argument("--quiet", action="store_true", help="only print errors")
    parser.add_argument("--workers", type=non_negative_int, default=None)
    parser.add_argument("--retries", type=non_negative_int, default=None)

    commands = parser.add_subparsers(dest="command", required=True)

    ls = commands.add_parser("ls", help="list buckets, objects and folders")
    ls.add_argument("urls", nargs="+", metavar="URL")
    ls.add_argument("--json", action="store_true", help="one JSON record per line")
    ls.add_argument("-r", "--recursive", action="store_true")
    ls.set_defaults(handler=cmd_ls)

    cp = commands.add_parser("cp", help="copy objects and folders")
    cp.add_argument("sources", nargs="+", metavar="SOURCE")
    cp.add_argument("target", metavar="TARGET")
    cp.set_defaults(handler=cmd_cp)

    mir = commands.add_parser("mirror", help="copy what the target does not hold yet")
    mir.add_argument("source", metavar="SOURCE")
    mir.add_argument("target", metavar="TARGET")
    mir.add_argument("--compare", choices=[p.value for p in ComparePolicy])
    mir.set_defaults(handler=cmd_mirror)

    diff = commands.add_parser("diff", help="compare two folders, buckets or objects")
    diff.add_argument("first", metavar="URL1")
    diff.add_argument("second", metavar="URL2")
    diff.add_argument("-r", "--recursive", action="store_true")
    diff.add_argument("--verbose", action="store_true", help="also report unchanged entries")
    diff.add_argument("--compare", choices=[p.value for p in ComparePolicy])
    diff.set_defaults(handler=cmd_diff)

    cat = commands.add_parser("cat", help="write object contents to stdout")
    cat.add_argument("urls", nargs="+", metavar="URL")
    cat.set_defaults(handler=cmd_cat)

    share = commands.add_parser("share", help="generate pre-signed links")
    share_commands = share.add_subparsers(dest="share_command", required=True)
    download = share_commands.add_parser("download", help="pre-signed download URL")
    download.add_argument("url", metavar="URL")
    download.add_argument("expiry", nargs="?", default=None, metavar="DURATION")
    upload = share_commands.add_parser("upload", help="pre-signed upload form")
    upload.add_argument("url", metavar="URL")
    upload.add_argument("expiry", nargs="?", default=None, metavar="DURATION")
    upload.add_argument("content_type", nargs="?", default=None, metavar="CONTENT-TYPE")
    share.set_defaults(handler=cmd_share)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the mcpy application."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.debug, args.quiet)

    try:
        config = load_config(args.config)
        factory = functools.partial(client_from_url, config=config)
        return args.handler(args, config, factory)
    except Exit as e:
        print(f"mcpy: {e}", file=sys.stderr)
        return 1
    except (McError, ValueError) as e:
        log.debug("command failed", exc_info=True)
        print(f"mcpy: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("mcpy: interrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
