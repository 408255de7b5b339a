"""Simple command line demo for the puzzle generator."""

from __future__ import annotations

import argparse
import json
import logging
from datetime import date as date_type
from typing import List, Optional

from .config import Difficulty, load_generation_config
from .generator import GenerationReport, PuzzleGenerator, generate_daily_reports
from .puzzle import render_board


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="laser-puzzle",
        description="Generate and validate daily laser reflection puzzles.",
    )
    parser.add_argument(
        "--difficulty",
        choices=[difficulty.value for difficulty in Difficulty],
        default=Difficulty.EASY.value,
    )
    parser.add_argument("--date", help="Puzzle date (YYYY-MM-DD); seeds the generator")
    parser.add_argument("--seed", help="Explicit random seed, overrides the date seed")
    parser.add_argument("--daily", action="store_true", help="Generate all three difficulties")
    parser.add_argument("--workers", type=int, default=1)
    parser.add_argument("--json", action="store_true", help="Print puzzles as JSON")
    parser.add_argument("--verbose", "-v", action="count", default=0)
    return parser


def _summary(report: GenerationReport) -> List[str]:
    puzzle = report.puzzle
    lines = [
        f"Puzzle: {puzzle.id} ({Difficulty.from_name(puzzle.difficulty).value}, "
        f"{puzzle.grid_size}x{puzzle.grid_size})",
        f"Entry: {puzzle.entry}  Exit: {puzzle.solution}",
        f"Materials: {len(puzzle.materials)} (density {puzzle.material_density:.2f})",
        f"Reflections: {puzzle.solution_path.bounces}  Confidence: {report.confidence_score}",
        f"Attempts: {report.attempts}  Fallback: {'yes' if report.fallback_used else 'no'}  "
        f"Elapsed: {report.elapsed_ms:.0f} ms",
    ]
    for failure in report.failures:
        lines.append(f"  attempt {failure.attempt}: {failure.kind.value} - {failure.message}")
    return lines


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    config = load_generation_config()
    if args.daily:
        day = args.date or date_type.today().isoformat()
        reports = list(generate_daily_reports(day, config, workers=args.workers).values())
    else:
        generator = PuzzleGenerator(config)
        reports = [generator.generate(args.difficulty, date=args.date, seed=args.seed)]

    if any(report.puzzle is None for report in reports):
        print("Puzzle generation failed and fallback is disabled.")
        return 1

    if args.json:
        print(json.dumps([report.puzzle.to_dict() for report in reports], indent=2))
        return 0

    print("=== Laser Puzzle Demo ===")
    for report in reports:
        for line in _summary(report):
            print(line)
        print(render_board(report.puzzle))
        print()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
