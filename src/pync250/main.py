"""
Command line interface for pync250.

Commands:
    pync250 check      Load the reference data, verify it and list the species groups
    pync250 estimate   Estimate height, volume and biomass for one species

Examples:
    pync250 check
    pync250 estimate --spcd 318 --dbh 4 8 12 --site-index 65 --basal-area 88
"""
import argparse
import logging
import math
import sys
from pathlib import Path
from typing import List, Optional

import pandas as pd
from rich.console import Console
from rich.table import Table

from .config_loader import ConfigLoader
from .estimation import TreeEstimator
from .exceptions import NC250Error
from .logging_config import setup_logging
from .reference_data import ReferenceData
from .tree_list import estimate_tree_list

console = Console()


def _format(value: float, digits: int) -> str:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return "-"
    return f"{value:,.{digits}f}"


def _load_reference(cfg_dir: Optional[Path]) -> ReferenceData:
    loader = ConfigLoader(cfg_dir) if cfg_dir is not None else None
    return ReferenceData.from_loader(loader)


def run_check(args: argparse.Namespace) -> int:
    """Load and verify reference data, then print the species groups."""
    reference = _load_reference(args.cfg_dir)

    table = Table(title="RP NC-250 species groups")
    table.add_column("Species group", style="cyan")
    table.add_column("Listed species", justify="right")
    table.add_column("Height b1", justify="right")
    table.add_column("Cubic b1", justify="right")
    table.add_column("Board b1", justify="right")
    table.add_column("lbs/ft³", justify="right")

    member_counts = {}
    for member in reference.members:
        member_counts[member.species_group] = member_counts.get(member.species_group, 0) + 1

    for group in reference.species_groups:
        table.add_row(
            group,
            str(member_counts.get(group, 0)),
            _format(reference.coefficient_row('height', group).b1, 4),
            _format(reference.coefficient_row('cubic_volume', group).b1, 6),
            _format(reference.coefficient_row('board_volume', group).b1, 4),
            _format(reference.coefficient_row('biomass', group).biomass_lbs_per_ft3, 1),
        )

    console.print(table)
    console.print(
        f"[green]Reference data OK:[/green] {len(reference.species_groups)} species groups, "
        f"{len(reference.group_by_species)} listed species, "
        f"{len(reference.species)} FIA species codes"
    )
    for name, verified in reference.provisional_tables.items():
        console.print(
            f"[yellow]Provisional table:[/yellow] {name} "
            f"(verified groups: {', '.join(sorted(verified)) or 'none'}; "
            f"{len(reference.unverified_groups(name))} groups carry placeholder values)"
        )
    return 0


def run_estimate(args: argparse.Namespace) -> int:
    """Estimate height, volume and biomass for trees of one species."""
    estimator = TreeEstimator(_load_reference(args.cfg_dir))
    trees = pd.DataFrame({'spcd': args.spcd, 'dbh': args.dbh})
    estimates = estimate_tree_list(
        trees,
        site_index=args.site_index,
        stand_basal_area=args.basal_area,
        estimator=estimator,
    )

    table = Table(title=f"Species {args.spcd} ({estimates['species_group'].iloc[0]})")
    table.add_column("DBH (in)", justify="right")
    table.add_column("Height to 4\" (ft)", justify="right")
    table.add_column("Height to 9\" (ft)", justify="right")
    table.add_column("Gross ft³", justify="right")
    table.add_column("Gross bd ft", justify="right")
    table.add_column("Biomass (tons)", justify="right")

    for row in estimates.itertuples(index=False):
        table.add_row(
            _format(row.dbh, 1),
            _format(row.ht_4in_ft, 1),
            _format(row.ht_9in_ft, 1),
            _format(row.vol_cuft, 2),
            _format(row.vol_bdft, 1),
            _format(row.biomass_tons, 4),
        )

    console.print(table)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pync250",
        description="Lake States tree height, volume and biomass (Hahn 1984, RP NC-250)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--cfg-dir", type=Path, default=None,
                        help="Directory with reference data files (default: packaged data)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    check = subparsers.add_parser("check", help="Verify reference data and list species groups")
    check.set_defaults(func=run_check)

    estimate = subparsers.add_parser("estimate", help="Estimate height, volume and biomass")
    estimate.add_argument("--spcd", type=int, required=True, help="FIA species code")
    estimate.add_argument("--dbh", type=float, nargs="+", required=True, help="DBH in inches")
    estimate.add_argument("--site-index", type=float, required=True, help="Site index (base age 50)")
    estimate.add_argument("--basal-area", type=float, required=True,
                          help="Stand basal area (sq ft/acre)")
    estimate.set_defaults(func=run_estimate)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the pync250 command.

    Returns:
        Process exit code
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        return args.func(args)
    except NC250Error as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
