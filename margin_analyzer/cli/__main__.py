from __future__ import annotations

import argparse
import asyncio
import math
import sys
from pathlib import Path

from dotenv import load_dotenv

from ..config.loader import ConfigError, load_config
from ..excel.reader import ReaderError, read_sheet
from ..logging.init import enable_debug, log_summary, setup_logging
from ..models.analysis import MarginAnalysis
from ..models.config_models import AnalyzerSettings
from ..models.product import ProductType
from ..services.calculations import effective_margin, margin_for_target, margin_health
from ..services.export import export_to_csv
from ..services.filtering import ProductFilter, filter_products, sort_products
from ..services.importer import import_files
from ..services.summary import render_import_summary_line, render_summary_line, summarize
from ..storage import AnalysisStore, JsonFileAnalysisStore, StorageError

"""CLI entrypoint.

Subcommands:
- import FILE...       import spreadsheets as new analyses
- list                 stored analyses, newest first
- show ID              summary + per-product margins and target prices
- delete ID            remove an analysis
- export ID OUT.csv    write (optionally filtered or --code selected) products as CSV
- inspect FILE         print detected headers and the first rows
"""

EXIT_SUCCESS_ALL = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env; its values take precedence over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="margin-analyzer", description="Product margin analyzer")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", type=Path, default=None, help="Config file (default: config/analyzer.yml)")
    sub = p.add_subparsers(dest="command", required=True)

    imp = sub.add_parser("import", help="Import .xlsx/.csv files")
    imp.add_argument("files", nargs="+", type=Path)
    imp.add_argument("--name", default=None, help="Analysis name (single file only)")

    sub.add_parser("list", help="List stored analyses")

    show = sub.add_parser("show", help="Show an analysis")
    show.add_argument("analysis_id")
    show.add_argument("--target", type=int, action="append", default=None, help="Target margin %% (repeatable)")
    _add_filter_args(show)

    delete = sub.add_parser("delete", help="Delete an analysis")
    delete.add_argument("analysis_id")

    export = sub.add_parser("export", help="Export products to CSV")
    export.add_argument("analysis_id")
    export.add_argument("output", type=Path)
    _add_filter_args(export)
    export.add_argument(
        "--code", action="append", default=[], metavar="CODE", help="Export only this product code (repeatable)"
    )

    inspect = sub.add_parser("inspect", help="Print headers & first rows of a file")
    inspect.add_argument("file", type=Path)
    inspect.add_argument("--rows", type=int, default=3)
    return p.parse_args(argv)


def _add_filter_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--search", default="", help="Substring of code or name")
    p.add_argument("--type", dest="product_type", choices=[t.value for t in ProductType], default=None)
    p.add_argument("--variant", action="append", default=[], metavar="KEY:VALUE")
    p.add_argument("--visibility", action="append", default=[], metavar="KEY:VALUE")
    p.add_argument("--sort", default="margin", help="Sort field (default: margin)")
    p.add_argument("--desc", action="store_true", help="Sort descending")


def _parse_pairs(values: list[str]) -> frozenset[tuple[str, str]]:
    pairs = set()
    for v in values:
        key, sep, value = v.partition(":")
        if not sep:
            raise ValueError(f"expected KEY:VALUE, got '{v}'")
        pairs.add((key, value))
    return frozenset(pairs)


def _build_filter(args: argparse.Namespace) -> ProductFilter:
    return ProductFilter(
        search=args.search,
        variant_filters=_parse_pairs(args.variant),
        visibility_filters=_parse_pairs(args.visibility),
        product_type=ProductType(args.product_type) if args.product_type else None,
        selected_codes=frozenset(getattr(args, "code", None) or []),
    )


def _format_price(value: float) -> str:
    return "unattainable" if math.isinf(value) else f"{value:.2f}"


def _get_or_fail(store: AnalysisStore, analysis_id: str) -> MarginAnalysis | None:
    analysis = asyncio.run(store.get_analysis(analysis_id))
    if analysis is None:
        setup_logging().error(f"analysis not found: {analysis_id}")
    return analysis


def _cmd_import(args: argparse.Namespace, store: AnalysisStore, settings: AnalyzerSettings) -> int:
    result = import_files(args.files, store, settings, name=args.name)
    log_summary(render_import_summary_line(result)[len("SUMMARY "):])
    if result.failed_files > 0:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def _cmd_list(store: AnalysisStore) -> int:
    analyses = asyncio.run(store.list_analyses())
    if not analyses:
        print("no analyses stored")
        return EXIT_SUCCESS_ALL
    for a in analyses:
        s = a.summary
        print(
            f"{a.id}  {a.created_at}  {a.name!r} ({a.file_name}) "
            f"products={s.total_products} avg_margin={s.avg_margin:.1f}%"
        )
    return EXIT_SUCCESS_ALL


def _cmd_show(args: argparse.Namespace, store: AnalysisStore, settings: AnalyzerSettings) -> int:
    analysis = _get_or_fail(store, args.analysis_id)
    if analysis is None:
        return EXIT_FATAL
    targets = args.target or list(settings.default_targets)
    flt = _build_filter(args)
    products = sort_products(filter_products(analysis.products, flt), args.sort, descending=args.desc)

    print(f"{analysis.name} ({analysis.file_name}) created {analysis.created_at}")
    print(render_summary_line(analysis.summary))
    if flt.is_active:
        print(f"filtered {len(products)}/{len(analysis.products)}: {render_summary_line(summarize(products))}")

    header = ["code", "name", "type", "purchase", "price", "margin"]
    header += [f"@{t}% price" for t in targets]
    print("\t".join(header))
    for p in products:
        margin = effective_margin(p)
        cells = [
            p.code,
            p.name,
            p.product_type.value,
            f"{p.purchase_price:.2f}",
            f"{p.price:.2f}",
            f"{margin:.1f}% [{margin_health(margin).value}]",
        ]
        for t in targets:
            calc = margin_for_target(p, t)
            if math.isinf(calc.new_price):
                cells.append(_format_price(calc.new_price))
            else:
                cells.append(f"{calc.new_price:.2f} ({calc.price_change_percent:+.1f}%)")
        print("\t".join(cells))
    return EXIT_SUCCESS_ALL


def _cmd_delete(args: argparse.Namespace, store: AnalysisStore) -> int:
    if _get_or_fail(store, args.analysis_id) is None:
        return EXIT_FATAL
    asyncio.run(store.delete_analysis(args.analysis_id))
    setup_logging().info(f"deleted analysis {args.analysis_id}")
    return EXIT_SUCCESS_ALL


def _cmd_export(args: argparse.Namespace, store: AnalysisStore) -> int:
    analysis = _get_or_fail(store, args.analysis_id)
    if analysis is None:
        return EXIT_FATAL
    products = sort_products(filter_products(analysis.products, _build_filter(args)), args.sort, descending=args.desc)
    path = export_to_csv(products, args.output)
    setup_logging().info(f"exported {len(products)} products to {path}")
    return EXIT_SUCCESS_ALL


def _cmd_inspect(args: argparse.Namespace, settings: AnalyzerSettings) -> int:
    try:
        sheet = read_sheet(args.file, keep_na_strings=settings.keep_na_strings)
    except ReaderError as e:
        setup_logging().error(f"inspect: {e}")
        return EXIT_FATAL
    print(f"FILE: {args.file.name} SHEET: {sheet.sheet_name}")
    print(f"  cols={sheet.columns}")
    # datetime 等は isoformat で表示
    for r in sheet.rows[: args.rows]:
        print("  row=", {k: (v.isoformat() if hasattr(v, "isoformat") else v) for k, v in r.items()})
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # 空リスト [] のときに sys.argv が混入しないよう None のときのみ読む
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        enable_debug()

    try:
        settings = load_config(args.config, required=args.config is not None)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.command == "inspect":
        return _cmd_inspect(args, settings)

    store = JsonFileAnalysisStore(settings.storage_path)
    logger.debug(f"store: {store.path}")
    try:
        if args.command == "import":
            return _cmd_import(args, store, settings)
        if args.command == "list":
            return _cmd_list(store)
        if args.command == "show":
            return _cmd_show(args, store, settings)
        if args.command == "delete":
            return _cmd_delete(args, store)
        if args.command == "export":
            return _cmd_export(args, store)
    except StorageError as e:
        logger.error(f"storage: {e}")
        return EXIT_FATAL
    except ValueError as e:
        logger.error(f"{args.command}: {e}")
        return EXIT_FATAL
    return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
