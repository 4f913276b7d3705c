#!/usr/bin/env python3
import sys
import logging
import argparse

from models import SimulationSettings
from programs import SAMPLE_PROGRAMS
from report import export_report, format_timing_table, format_statistics, format_registers
from simulator import PipelineEngine

logger = logging.getLogger(__name__)


def build_parser():
    p = argparse.ArgumentParser(description="5-stage pipeline hazard simulator")
    p.add_argument("program", nargs="?", help="assembly source file")
    p.add_argument("--sample", choices=sorted(SAMPLE_PROGRAMS), help="run a built-in sample program")
    p.add_argument("--no-forwarding", action="store_true", help="disable operand forwarding")
    p.add_argument("--branch-prediction", action="store_true", help="mark control hazards as resolved")
    p.add_argument("--seed", type=int, help="seed for initial register and memory contents")
    p.add_argument("--max-cycles", type=int, default=10000)
    p.add_argument("--export", metavar="PATH", help="write a JSON report")
    p.add_argument("--charts", metavar="PATH", help="save charts to an image file")
    p.add_argument("--gui", action="store_true", help="open the desktop front end")
    p.add_argument("--log-level", default="WARNING", type=str.upper,
                   choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    return p


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(stream=sys.stdout, level=args.log_level)

    settings = SimulationSettings(forwarding_enabled=not args.no_forwarding,
                                  branch_prediction_enabled=args.branch_prediction)

    if args.gui:
        from gui import launch
        launch(seed=args.seed, settings=settings)
        return 0

    if args.sample:
        text = SAMPLE_PROGRAMS[args.sample]
    elif args.program:
        try:
            with open(args.program, encoding="utf-8") as f:
                text = f.read()
        except OSError as exc:
            print(f"Cannot read {args.program}: {exc}", file=sys.stderr)
            return 1
    else:
        print("Usage: python main.py <asm> | --sample NAME | --gui", file=sys.stderr)
        return 1

    engine = PipelineEngine(seed=args.seed)
    engine.apply_settings(settings)
    if not engine.load_program(text):
        print("Failed to load program", file=sys.stderr)
        return 1

    state = engine.run(max_cycles=args.max_cycles)
    if not engine.is_complete():
        logger.warning("Stopped after %d cycles before the program finished", state.current_cycle)

    print("\n=== Pipeline Diagram ===")
    print(format_timing_table(state))
    print("\n=== Stats ===")
    print(format_statistics(state))
    print("\n=== Registers ===")
    print(format_registers(state))

    if args.export:
        export_report(args.export, state, settings)
    if args.charts:
        from charts import save_charts
        save_charts(state, args.charts)
    return 0


if __name__ == '__main__':
    sys.exit(main())
