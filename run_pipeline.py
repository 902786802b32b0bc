from __future__ import annotations

import argparse
import importlib
from pathlib import Path
from typing import Any, Dict, List

from wine_clustering.errors import PipelineError
from wine_clustering.utils import PipelinePaths, ensure_output_dirs, load_yaml, save_json

PIPELINE_STEPS: List[str] = [
    "ingestion",
    "clustering",
    "profiling",
    "persistence",
    "inference",
    "evaluation",
]


def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Wine k-means clustering with ONNX export")
    parser.add_argument(
        "--config",
        default="config/wine_clustering.yaml",
        help="Path to pipeline config YAML.",
    )
    parser.add_argument(
        "--steps",
        nargs="+",
        default=PIPELINE_STEPS,
        choices=PIPELINE_STEPS,
        help="Subset of steps to run in order.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print planned steps and exit.",
    )
    return parser.parse_args(argv)


def run_step(step_name: str, config: Dict[str, Any], context: Dict[str, Any]) -> Dict[str, Any]:
    module = importlib.import_module(f"wine_clustering.{step_name}")
    if not hasattr(module, "run"):
        return {"step": step_name, "status": "error", "message": "Missing run() in module."}
    try:
        return module.run(config=config, context=context)
    except PipelineError as exc:
        return {
            "step": step_name,
            "status": "error",
            "error_type": type(exc).__name__,
            "message": str(exc),
        }


def run_pipeline(config: Dict[str, Any], steps: List[str]) -> List[Dict[str, Any]]:
    context: Dict[str, Any] = {}
    step_results: List[Dict[str, Any]] = []

    for step in steps:
        result = run_step(step, config, context)
        step_results.append(result)
        print(f"[{result.get('status', 'unknown')}] {step}: {result.get('message', '')}")
        if result.get("status") == "error":
            break

    return step_results


def main(argv: List[str] | None = None) -> None:
    args = parse_args(argv)
    config = load_yaml(args.config)
    paths = PipelinePaths.from_config(config)
    ensure_output_dirs(paths)

    if args.dry_run:
        print("Planned steps:")
        for step in args.steps:
            print(f"- {step}")
        return

    summary_path = paths.reports_dir / "pipeline_summary.json"
    step_results = run_pipeline(config, args.steps)
    summary = {
        "config": str(Path(args.config)),
        "steps": step_results,
    }
    save_json(summary, summary_path)
    print(f"Saved summary: {summary_path}")

    if any(r.get("status") == "error" for r in step_results):
        raise SystemExit(1)


if __name__ == "__main__":
    main()
