"""Utility script to analyze metrics files from checker runs.

Usage:
    python analyze_logs.py <metrics_file.json> [<more_files>...]
    python analyze_logs.py logs/sample_search_20261019_104713_metrics.json
"""

import json
import sys
from pathlib import Path

import pandas as pd


def load_metrics(metrics_file):
    with open(metrics_file, 'r') as f:
        return json.load(f)


def runs_dataframe(metrics_files):
    """One row per run with the search statistics.

    Args:
        metrics_files: Paths of metrics JSON files

    Returns:
        pd.DataFrame with columns instance, runtime, searches, nodes, pruned,
        leaves, prune_pct, success
    """
    rows = []
    for file in metrics_files:
        m = load_metrics(file)
        nodes = m.get("nodes_explored", 0)
        rows.append({
            "instance": m["instance_name"],
            "runtime": m.get("total_runtime") or 0.0,
            "searches": m.get("search_calls", 0),
            "nodes": nodes,
            "pruned": m.get("nodes_pruned", 0),
            "leaves": m.get("nodes_evaluated", 0),
            "prune_pct": 100 * m.get("nodes_pruned", 0) / nodes if nodes > 0 else 0.0,
            "success": m.get("final_result", {}).get("success"),
        })
    return pd.DataFrame(rows)


def cases_dataframe(metrics):
    """One row per case with its outcome and number of bisection steps."""
    steps = pd.DataFrame(metrics.get("bisection_steps", []))
    step_counts = steps.groupby("k").size() if not steps.empty else pd.Series(dtype=int)
    rows = []
    for k, entry in metrics.get("case_results", {}).items():
        key = int(k) if k.isdigit() else k
        rows.append({
            "case": k,
            "status": entry["status"],
            "value": entry.get("value"),
            "iterations": int(step_counts.get(key, 0)),
            "reason": entry.get("reason"),
            "pattern": entry.get("pattern"),
        })
    return pd.DataFrame(rows, columns=["case", "status", "value", "iterations", "reason", "pattern"])


def analyze_metrics(metrics_file):
    """Analyze and summarize metrics from a checker run."""
    metrics = load_metrics(metrics_file)

    print("=" * 70)
    print(f"ANALYSIS: {metrics['instance_name']}")
    print(f"Run ID: {metrics['timestamp']}")
    print("=" * 70)

    print("\n--- PERFORMANCE SUMMARY ---")
    print(f"Total runtime: {metrics['total_runtime']:.3f} seconds")
    print(f"Pattern searches: {metrics['search_calls']:,}")
    print(f"Nodes explored: {metrics['nodes_explored']:,}")
    print(f"Nodes pruned: {metrics['nodes_pruned']:,}")
    print(f"Nodes evaluated (leaves): {metrics['nodes_evaluated']:,}")
    if metrics['nodes_explored'] > 0:
        prune_rate = 100 * metrics['nodes_pruned'] / metrics['nodes_explored']
        print(f"Pruning rate: {prune_rate:.2f}%")

    if 'problem_data' in metrics:
        print("\n--- PARAMETERS ---")
        for key, value in metrics['problem_data'].items():
            print(f"{key}: {value}")

    cases = cases_dataframe(metrics)
    if not cases.empty:
        print("\n--- CASES ---")
        with pd.option_context('display.max_rows', None, 'display.width', 200,
                               'display.max_colwidth', 50):
            print(cases.to_string(index=False))
        print(f"\nResolved: {(cases['status'] == 'Resolved').sum()} of {len(cases)}")

    if 'final_result' in metrics:
        print("\n--- FINAL RESULT ---")
        result = metrics['final_result']
        print(f"Success: {result.get('success')}")
        if result.get('failed_case') is not None:
            print(f"Failed case: {result['failed_case']}")
        for name in ("y1", "y2", "y3"):
            if result.get(name):
                print(f"{name}: {result[name]}")

    print("\n" + "=" * 70)
    return cases


def compare_runs(metrics_files):
    """Compare multiple checker runs."""
    df = runs_dataframe(metrics_files)

    print("=" * 70)
    print(f"COMPARING {len(df)} RUNS")
    print("=" * 70)
    print(df.to_string(index=False, float_format=lambda x: f"{x:.2f}"))
    print("=" * 70)
    return df


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python analyze_logs.py <metrics_file.json> [<more_files>...]")
        print("\nExample:")
        print("  python analyze_logs.py logs/sample_search_20261019_104713_metrics.json")
        sys.exit(1)

    files = [Path(f) for f in sys.argv[1:]]

    for f in files:
        if not f.exists():
            print(f"Error: File not found: {f}")
            sys.exit(1)

    if len(files) == 1:
        analyze_metrics(files[0])
    else:
        for f in files:
            analyze_metrics(f)
            print("\n")
        compare_runs(files)
