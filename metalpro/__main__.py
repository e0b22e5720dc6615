from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys

from .bom_parser import BOMRow, parse_bom_file
from .cart import build_cart_lines, cart_totals
from .catalog import CatalogIndex, load_catalog
from .db import get_connection
from .errors import MetalproError
from .estimator import (
    CUSTOM_LENGTH,
    FINISH_MULTIPLIERS,
    LENGTH_OPTIONS,
    SELLING_UNITS,
    CutListItem,
    ProductConfiguration,
    delivery_window,
    estimate,
    format_money,
    waste_percentage,
)
from .matcher import match_rows
from .projects import SqliteProjectRepository
from .report import build_report
from .settings_store import AppSettings, default_log_dir, load_settings, save_settings
from . import __version__


logger = logging.getLogger(__name__)

DEFAULT_USER = "local"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="metalpro", description="MetalPro - BOM matching and estimates")
    parser.add_argument("--version", action="version", version=f"MetalPro {__version__}")
    parser.add_argument("--catalog", default=None, help="Catalog JSON path (remembered in settings)")
    parser.add_argument("--db-path", default=None, help="SQLite database path")
    sub = parser.add_subparsers(dest="command", required=True)

    match = sub.add_parser("match", help="Match a BOM file against the catalog")
    match.add_argument("bom", help="BOM file (.xlsx, .xlsm, .xls or .csv)")
    match.add_argument("--attention-only", action="store_true", default=None, help="Only list rows needing attention")
    match.add_argument("--cart", action="store_true", help="Show cart lines and totals for matched rows")
    match.add_argument("--save-as", default=None, help="Save the matched rows as a project")
    match.add_argument("--user", default=DEFAULT_USER)

    est = sub.add_parser("estimate", help="Weight and price estimate for one product")
    est.add_argument("product_id")
    est.add_argument("--unit", choices=SELLING_UNITS, default=None)
    est.add_argument("--length", choices=[*LENGTH_OPTIONS, CUSTOM_LENGTH], default=None)
    est.add_argument("--custom-length", type=float, default=None)
    est.add_argument("--qty", type=float, default=1)
    est.add_argument("--finish", choices=list(FINISH_MULTIPLIERS), default=None)
    est.add_argument("--cut", action="append", type=parse_cut, default=[], metavar="LENGTHxQTY", help="Cut list entry, e.g. 2.5x4")

    projects = sub.add_parser("projects", help="Saved projects")
    projects.add_argument("action", choices=["list", "show", "delete"])
    projects.add_argument("project_id", nargs="?")
    projects.add_argument("--user", default=DEFAULT_USER)
    return parser.parse_args(argv)


def configure_logging() -> None:
    log_dir = default_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        handlers=[
            logging.FileHandler(log_dir / "metalpro.log", encoding="utf-8"),
        ],
    )


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    args = parse_args(argv)
    settings = load_settings()
    if args.catalog:
        settings.catalog_path = str(Path(args.catalog).resolve())
        save_settings(settings)
    try:
        if args.command == "match":
            return run_match(args, settings)
        if args.command == "estimate":
            return run_estimate(args, settings)
        return run_projects(args, settings)
    except MetalproError as exc:
        logger.error("%s failed: %s", args.command, exc)
        print(f"error: {exc}", file=sys.stderr)
        return 1


def open_index(settings: AppSettings) -> CatalogIndex:
    return CatalogIndex(load_catalog(Path(settings.catalog_path)))


def open_repository(args: argparse.Namespace, settings: AppSettings) -> SqliteProjectRepository:
    db_path = Path(args.db_path).resolve() if args.db_path else Path(settings.db_path)
    return SqliteProjectRepository(get_connection(db_path))


def run_match(args: argparse.Namespace, settings: AppSettings) -> int:
    index = open_index(settings)
    parsed = parse_bom_file(Path(args.bom))
    rows = match_rows(parsed.rows, index)
    report = build_report(rows)

    attention_only = settings.attention_only if args.attention_only is None else args.attention_only
    for row in report.attention if attention_only else rows:
        print(format_row(row))

    stats = report.stats
    print(
        f"Rows: {stats.total_rows}, high={stats.high}, medium={stats.medium}, low={stats.low}, "
        f"unmatched={stats.unmatched}, match rate={stats.match_rate}%"
    )
    print(f"Needs attention: {len(report.attention)}, errors={report.error_count}, warnings={report.warning_count}")

    if args.cart:
        lines = build_cart_lines(rows, index)
        for line in lines:
            print(
                f"  {line.product_title}: {line.estimate.weight.total_weight:.2f} kg, "
                f"{format_money(line.estimate.price.subtotal)} RON"
            )
        totals = cart_totals(lines)
        print(
            f"Cart: {len(lines)} lines, {totals.est_weight_kg:.2f} kg, subtotal {format_money(totals.est_subtotal)} RON, "
            f"VAT {format_money(totals.vat)} RON, total {format_money(totals.grand_total)} RON, "
            f"delivery {totals.delivery_fee_band}"
        )

    if args.save_as:
        project = open_repository(args, settings).create(
            args.user, args.save_as, rows, file_name=parsed.file_name
        )
        print(f"Saved project {project.name} ({project.id})")
    return 0


def format_row(row: BOMRow) -> str:
    described = " ".join(v for v in (row.family, row.standard, row.grade, row.dimension) if v) or "-"
    parts = [f"{row.row_index:>4}", f"{row.match_confidence:<6}", described, f"-> {row.matched_product_id or '-'}"]
    if row.match_reason:
        parts.append(f"({row.match_reason})")
    messages = [*row.errors, *row.warnings]
    if messages:
        parts.append("[" + "; ".join(messages) + "]")
    return " ".join(parts)


def parse_cut(value: str) -> CutListItem:
    length, sep, qty = value.lower().partition("x")
    try:
        if not sep:
            raise ValueError(value)
        return CutListItem(length_m=float(length.replace(",", ".")), quantity=int(qty))
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid cut '{value}', expected LENGTHxQTY") from None


def run_estimate(args: argparse.Namespace, settings: AppSettings) -> int:
    index = open_index(settings)
    product = index.get(args.product_id)
    if product is None:
        print(f"error: unknown product {args.product_id}", file=sys.stderr)
        return 1
    cuts = tuple(args.cut)
    config = ProductConfiguration(
        selling_unit=args.unit or product.price_unit,
        length_option=args.length or settings.default_length_option,
        custom_length=args.custom_length,
        quantity=args.qty,
        finish=args.finish or settings.default_finish,
        cut_to_length=bool(cuts),
        cut_list=cuts,
    )
    result = estimate(product, config)
    price = result.price
    print(product.title)
    print(f"Weight: {result.weight.total_weight:.2f} kg ({result.weight.formula})")
    print(f"Unit price: {format_money(price.unit_price)} RON/{product.price_unit}")
    print(f"Subtotal: {format_money(price.subtotal)} RON")
    print(f"VAT: {format_money(price.vat)} RON")
    print(f"Total: {format_money(price.total)} RON")
    print(f"Delivery: {price.delivery_fee_band}, {delivery_window(product)}")
    if cuts:
        print(f"Waste: {waste_percentage(config):.1f}%")
    return 0


def run_projects(args: argparse.Namespace, settings: AppSettings) -> int:
    repo = open_repository(args, settings)
    if args.action == "list":
        for project in repo.list_for_user(args.user):
            print(f"{project.id}  {project.name}  rows={project.total_rows}  updated={project.updated_at}")
        return 0
    if not args.project_id:
        print(f"error: projects {args.action} needs a project id", file=sys.stderr)
        return 2
    if args.action == "delete":
        repo.delete(args.project_id)
        print(f"Deleted project {args.project_id}")
        return 0
    project = repo.mark_used(args.project_id)
    print(f"{project.name} ({project.file_name or '-'}), {project.total_rows} rows")
    for row in project.rows:
        print(format_row(row))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
