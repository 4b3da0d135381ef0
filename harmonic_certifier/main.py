"""Dual LP certificate checker CLI.

This script provides a command-line interface for the checker. For every
case k it builds the knapsack-type dual LP of a Harmonic-type online bin
packing algorithm and either searches for a value of y3 that makes it
feasible (search) or checks given values of y1, y2, y3 (verify).

Usage:
    python main.py                      # Search y3 for the built-in sample
    python main.py sample               # Same as above
    python main.py search <params.json> # Search y3 values for a parameter file
    python main.py verify <params.json> # Verify given y1, y2, y3 values

Parameter files may set "family" to "super_harmonic"; the default is "harmonic".
Decimal numbers in parameter files are read exactly, so 0.1 means 1/10.

Exit status: 0 if every case is feasible, 1 if some case is infeasible,
2 if the parameters violate their contract.
"""

import json
import os
import sys
from fractions import Fraction

from models import ContractViolationError, TypeInfo
from bisection import VerifyMode
from dual_lp import HARMONIC, SUPER_HARMONIC, SUPER_HARMONIC_Y3_MAX, DualLPChecker


def create_sample_parameters():
    """Return a small Harmonic-type parameter set.

    Returns:
        dict with keys types, red_spaces, target_ratio (no y values)
    """
    types = [
        TypeInfo(Fraction(2, 5), Fraction(0), bluefit=2),
        TypeInfo(Fraction(1, 3), Fraction(1, 10), bluefit=2, redfit=1, needs=2),
        TypeInfo(Fraction(1, 4), Fraction(0), bluefit=3),
        TypeInfo(Fraction(1, 5), Fraction(1, 20), bluefit=4, redfit=2, needs=1),
        TypeInfo(Fraction(1, 6), Fraction(0), bluefit=5),
        TypeInfo(Fraction(1, 7), Fraction(0), bluefit=6),
        TypeInfo(Fraction(1, 8), Fraction(0), bluefit=7),
        TypeInfo(Fraction(1, 9), Fraction(0), bluefit=8),
        TypeInfo(Fraction(1, 11), Fraction(0), bluefit=9),
    ]
    red_spaces = [Fraction(0), Fraction(1, 5), Fraction(2, 5)]
    return {"types": types, "red_spaces": red_spaces, "target_ratio": Fraction(17, 10)}


def _fraction_dict(raw):
    return {int(k): Fraction(v) for k, v in (raw or {}).items()}


def load_parameters_from_json(path):
    """Load a parameter set from a JSON file.

    Expects format (fractions as strings such as "1/3" or "0.25", or as
    JSON numbers, which are parsed exactly):
    {
        "family": "harmonic",
        "target_ratio": "17/10",
        "red_spaces": ["0", "1/5", "2/5"],
        "types": [{"size_lb": "1/3", "red_fraction": "1/10", "bluefit": 2,
                   "redfit": 1, "needs": 2, "leaves": 0}, ...],
        "y1": {"2": "1/40"}, "y2": {"2": "1/20"}, "y3": {"1": "3/16"}
    }

    Args:
        path: Path to JSON file

    Returns:
        dict with family, types, red_spaces, target_ratio, y1, y2, y3

    Raises:
        FileNotFoundError: If path does not exist
        ContractViolationError: If a required key is missing
    """
    if not os.path.exists(path):
        raise FileNotFoundError(path)
    with open(path, "r") as f:
        data = json.load(f, parse_float=Fraction)
    for key in ("target_ratio", "red_spaces", "types"):
        if key not in data:
            raise ContractViolationError(f"Parameter file {path} lacks '{key}'")
    types = [TypeInfo(Fraction(t["size_lb"]), Fraction(t.get("red_fraction", "0")),
                      bluefit=int(t["bluefit"]), redfit=int(t.get("redfit", 1)),
                      needs=int(t.get("needs", 0)), leaves=int(t.get("leaves", 0)))
             for t in data["types"]]
    return {
        "family": data.get("family", HARMONIC),
        "types": types,
        "red_spaces": [Fraction(r) for r in data["red_spaces"]],
        "target_ratio": Fraction(data["target_ratio"]),
        "y1": _fraction_dict(data.get("y1")),
        "y2": _fraction_dict(data.get("y2")),
        "y3": _fraction_dict(data.get("y3")),
    }


def print_parameters(params):
    """Print a parameter set to console."""
    print(f"Family: {params.get('family', HARMONIC)}")
    print(f"Target ratio: {params['target_ratio']} = {float(params['target_ratio']):.5f}")
    print(f"Red spaces: {[str(r) for r in params['red_spaces']]}")
    print(f"{len(params['types'])} item types:")
    for t in params["types"]:
        print(f"  {t}: bluefit={t.bluefit}, redfit={t.redfit}, needs={t.needs}, leaves={t.leaves}")


def print_report(report):
    """Print the outcome of a run to console."""
    for k, result in report.results.items():
        status = type(result).__name__
        detail = getattr(result, "reason", None) or getattr(result, "value", None)
        print(f"  case {k}: {status} {'' if detail is None else detail}")
    if report.y3:
        print("y3 values: " + ", ".join(f"k={k}: {v}" for k, v in report.y3.items()))
    if report.y1:
        print("y1 values: " + ", ".join(f"k={k}: {v}" for k, v in report.y1.items()))
        print("y2 values: " + ", ".join(f"k={k}: {v}" for k, v in report.y2.items()))


def exit_status(report):
    if report.success:
        return 0
    if report.contract_violation:
        return 2
    return 1


def run_checker(params, mode="search", logger=None):
    """Run all cases for a parameter set.

    Args:
        params: dict as returned by load_parameters_from_json
        mode: "search" or "verify"
        logger: Optional BnBLogger

    Returns:
        CertificateReport
    """
    family = params.get("family", HARMONIC)
    strategy = None
    if mode == "verify":
        y3_max = SUPER_HARMONIC_Y3_MAX if family == SUPER_HARMONIC else None
        strategy = VerifyMode(params.get("y1"), params.get("y2"), params.get("y3"), y3_max=y3_max)
    checker = DualLPChecker(params["types"], params["red_spaces"], params["target_ratio"],
                            strategy=strategy, logger=logger, family=family)
    return checker.run()


def main(args):
    from logger import create_logger

    if len(args) >= 1 and args[0] in ("search", "verify"):
        if len(args) < 2:
            print(f"Usage: python main.py {args[0]} <params.json>")
            return 2
        try:
            params = load_parameters_from_json(args[1])
        except (FileNotFoundError, ValueError, KeyError) as exc:
            print("Error reading parameters:", exc)
            return 2
        name = os.path.splitext(os.path.basename(args[1]))[0]
        mode = args[0]
    else:
        params = create_sample_parameters()
        name = "sample"
        mode = "search"

    print_parameters(params)
    logger = create_logger(instance_name=f"{name}_{mode}")
    try:
        report = run_checker(params, mode=mode, logger=logger)
    except ContractViolationError as exc:
        print("Invalid parameters:", exc)
        return 2

    print(f"\nResult ({mode}):")
    print_report(report)
    if report.success:
        print(f"\nAll cases proven feasible! Competitive ratio is {float(params['target_ratio']):.5f}")
    else:
        print("\nCouldn't prove the target ratio.")
    print(f"Log files saved to: {logger.log_dir}/")
    return exit_status(report)


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
