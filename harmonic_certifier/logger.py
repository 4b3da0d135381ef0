"""Logging system for the dual LP certificate checker.

This module provides structured logging for tracking the pattern searches
and bisections, including node statistics, incumbent updates, bisection
steps and per-case outcomes.
"""

import logging
import json
import time
from pathlib import Path
from datetime import datetime
from typing import Dict, Any, Optional


class BnBLogger:
    """Logger for the pattern search and the bisection loop with metrics.

    Tracks:
    - Standard log messages (debug, info, warning, error)
    - Search metrics (search calls, nodes explored, pruned, leaves)
    - Incumbent updates inside the searches
    - Bisection steps and the outcome of every case
    """

    def __init__(self, log_dir: str = "logs", instance_name: str = "default"):
        """Initialize the logger.

        Args:
            log_dir: Directory for log files
            instance_name: Name of the parameter set being checked
        """
        self.instance_name = instance_name
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.run_id = f"{instance_name}_{self.timestamp}"

        self.metrics = {
            "instance_name": instance_name,
            "timestamp": self.timestamp,
            "start_time": None,
            "end_time": None,
            "total_runtime": None,
            "search_calls": 0,
            "nodes_explored": 0,
            "nodes_pruned": 0,
            "nodes_evaluated": 0,  # leaves reached at the end of the type order
            "incumbent_updates": [],
            "pruning_reasons": {},
            "bisection_steps": [],
            "case_results": {},
        }

        self._setup_file_logger()
        self._setup_metrics_logger()

        self.logger.info(f"Initialized logger for instance: {instance_name}")
        self.logger.info(f"Run ID: {self.run_id}")

    def _setup_file_logger(self):
        """Setup standard file logger for text messages."""
        log_file = self.log_dir / f"{self.run_id}.log"

        self.logger = logging.getLogger(f"certifier_{self.run_id}")
        self.logger.setLevel(logging.DEBUG)
        self.logger.propagate = False

        # Remove existing handlers to avoid duplicates
        for handler in list(self.logger.handlers):
            handler.close()
        self.logger.handlers.clear()

        file_handler = logging.FileHandler(log_file, mode='w')
        file_handler.setLevel(logging.DEBUG)
        file_formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        file_handler.setFormatter(file_formatter)
        self.logger.addHandler(file_handler)

        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)
        console_formatter = logging.Formatter('%(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        self.logger.addHandler(console_handler)

    def _setup_metrics_logger(self):
        """Setup metrics file for structured performance data."""
        self.metrics_file = self.log_dir / f"{self.run_id}_metrics.json"

    def start_run(self, problem_data: Optional[Dict[str, Any]] = None):
        """Mark the start of a checker run.

        Args:
            problem_data: Dictionary with parameter characteristics
                         (number of types, target ratio, mode, etc.)
        """
        self.metrics["start_time"] = time.time()
        if problem_data:
            self.metrics["problem_data"] = problem_data
        self.logger.info("=" * 60)
        self.logger.info("Starting dual LP checks")
        if problem_data:
            self.logger.info(f"Problem: {problem_data}")
        self.logger.info("=" * 60)

    def end_run(self, final_result: Optional[Dict[str, Any]] = None):
        """Mark the end of a checker run and save metrics.

        Args:
            final_result: Dictionary with the overall outcome
        """
        self.metrics["end_time"] = time.time()
        if self.metrics["start_time"] is None:
            self.metrics["start_time"] = self.metrics["end_time"]
        self.metrics["total_runtime"] = self.metrics["end_time"] - self.metrics["start_time"]

        if final_result:
            self.metrics["final_result"] = final_result

        self._save_metrics()

        self.logger.info("=" * 60)
        self.logger.info("Dual LP checks completed")
        self.logger.info(f"Total runtime: {self.metrics['total_runtime']:.3f} seconds")
        self.logger.info(f"Pattern searches: {self.metrics['search_calls']}")
        self.logger.info(f"Nodes explored: {self.metrics['nodes_explored']}")
        self.logger.info(f"Nodes pruned: {self.metrics['nodes_pruned']}")
        self.logger.info(f"Nodes evaluated: {self.metrics['nodes_evaluated']}")
        if self.metrics['nodes_explored'] > 0:
            prune_rate = 100 * self.metrics['nodes_pruned'] / self.metrics['nodes_explored']
            self.logger.info(f"Pruning rate: {prune_rate:.2f}%")
        self.logger.info("=" * 60)

    def log_search_start(self, n_items: int, threshold, case_k=None):
        """Log the start of one pattern search.

        Args:
            n_items: Number of item types that survived the expansion filter
            threshold: Weight threshold of the search
            case_k: Case index the search belongs to, if any
        """
        self.metrics["search_calls"] += 1
        self.logger.debug(f"Search {self.metrics['search_calls']} (k={case_k}): "
                          f"{n_items} types, threshold {float(threshold):.5f}")

    def log_node_visit(self, node_info: Optional[Dict[str, Any]] = None):
        """Log visiting a node in the search tree.

        Args:
            node_info: Optional dict with node details (depth, bound, pattern size);
                       the visit is only counted when it is None
        """
        self.metrics["nodes_explored"] += 1
        if node_info:
            self.logger.debug(f"Node {self.metrics['nodes_explored']}: {node_info}")

    def log_node_pruned(self, reason: str, node_info: Optional[Dict[str, Any]] = None):
        """Log pruning a node.

        Args:
            reason: Why the node was pruned (e.g., "bound_dominated")
            node_info: Optional dict with node details
        """
        self.metrics["nodes_pruned"] += 1
        reasons = self.metrics["pruning_reasons"]
        reasons[reason] = reasons.get(reason, 0) + 1
        if node_info:
            self.logger.debug(f"Pruned ({reason}): {node_info}")

    def log_node_evaluated(self, weight, node_info: Optional[Dict[str, Any]] = None):
        """Log evaluating a leaf node.

        Args:
            weight: Weight of the leaf pattern including sand
            node_info: Optional dict with node details
        """
        self.metrics["nodes_evaluated"] += 1
        if node_info:
            self.logger.debug(f"Evaluated leaf node: weight={float(weight):.6f}, {node_info}")

    def log_incumbent_update(self, new_incumbent, pattern: str, node_count: Optional[int] = None):
        """Log finding a heavier pattern.

        Args:
            new_incumbent: New best weight (including sand)
            pattern: Readable form of the pattern
            node_count: Number of nodes explored when found
        """
        update_info = {
            "incumbent": str(new_incumbent),
            "pattern": pattern,
            "node_count": node_count or self.metrics["nodes_explored"],
            "timestamp": time.time() - (self.metrics["start_time"] or time.time()),
        }
        self.metrics["incumbent_updates"].append(update_info)
        self.logger.debug(f"NEW INCUMBENT: {float(new_incumbent):.6f} with {pattern}")

    def log_bisection_step(self, k, iteration: int, center, lo, hi, weight=None,
                           w_component=None, v_component=None):
        """Log one evaluation of the bisection loop.

        Args:
            k: Case index
            iteration: 1-based iteration number
            center: Parameter value that was evaluated
            lo, hi: Interval before the update
            weight: Weight of the heaviest pattern (None if no pattern was found)
            w_component, v_component: Weight decomposition of that pattern
        """
        step = {
            "k": k,
            "iteration": iteration,
            "center": str(center),
            "lo": str(lo),
            "hi": str(hi),
            "weight": None if weight is None else str(weight),
            "w": None if w_component is None else str(w_component),
            "v": None if v_component is None else str(v_component),
        }
        self.metrics["bisection_steps"].append(step)
        if weight is None:
            self.logger.info(f"k={k} iter {iteration}: y3={float(center):.7f} no heavy pattern")
        else:
            self.logger.info(f"k={k} iter {iteration}: y3={float(center):.7f} "
                             f"heaviest pattern weight {float(weight):.5f}")

    def log_case_result(self, k, result):
        """Log the outcome of a case.

        Args:
            k: Case index (or "K+1")
            result: Resolved, Infeasible or ContractViolation
        """
        kind = type(result).__name__
        entry = {"status": kind}
        if hasattr(result, "value"):
            entry["value"] = None if result.value is None else str(result.value)
        if hasattr(result, "reason"):
            entry["reason"] = result.reason
        if getattr(result, "pattern", None) is not None:
            entry["pattern"] = str(result.pattern)
        self.metrics["case_results"][str(k)] = entry
        if result.ok:
            self.logger.info(f"Case k={k} resolved: {entry.get('value')}")
        else:
            self.logger.warning(f"Case k={k} {kind}: {entry.get('reason')}")

    def _save_metrics(self):
        """Save metrics dictionary to JSON file."""
        with open(self.metrics_file, 'w') as f:
            json.dump(self.metrics, f, indent=2, default=str)

        self.logger.info(f"Metrics saved to: {self.metrics_file}")

    def get_metrics(self) -> Dict[str, Any]:
        """Get current metrics dictionary.

        Returns:
            Dictionary with all tracked metrics
        """
        return self.metrics.copy()

    def debug(self, msg: str):
        self.logger.debug(msg)

    def info(self, msg: str):
        self.logger.info(msg)

    def warning(self, msg: str):
        self.logger.warning(msg)

    def error(self, msg: str):
        self.logger.error(msg)


class NoOpLogger:
    """Drop-in replacement for BnBLogger that records nothing."""

    metrics = None

    def start_run(self, problem_data=None):
        pass

    def end_run(self, final_result=None):
        pass

    def log_search_start(self, n_items, threshold, case_k=None):
        pass

    def log_node_visit(self, node_info=None):
        pass

    def log_node_pruned(self, reason, node_info=None):
        pass

    def log_node_evaluated(self, weight, node_info=None):
        pass

    def log_incumbent_update(self, new_incumbent, pattern, node_count=None):
        pass

    def log_bisection_step(self, k, iteration, center, lo, hi, weight=None,
                           w_component=None, v_component=None):
        pass

    def log_case_result(self, k, result):
        pass

    def get_metrics(self):
        return {}

    def debug(self, msg):
        pass

    def info(self, msg):
        pass

    def warning(self, msg):
        pass

    def error(self, msg):
        pass


def create_logger(instance_name: str = "default", log_dir: str = "logs") -> BnBLogger:
    """Factory function to create a BnBLogger.

    Args:
        instance_name: Name of the parameter set
        log_dir: Directory for log files

    Returns:
        Configured BnBLogger instance
    """
    return BnBLogger(log_dir=log_dir, instance_name=instance_name)
