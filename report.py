import json
import logging
from datetime import datetime, timezone

from isa import STAGES
from performance import calculate_metrics, get_detailed_analysis, compare_execution

logger = logging.getLogger(__name__)


def hazard_to_dict(h):
    d = h._asdict()
    d['type'] = h.type.value
    d['subtype'] = h.subtype.value
    return d


def build_report(state, settings):
    return {
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'metrics': calculate_metrics(state),
        'detailedAnalysis': get_detailed_analysis(state),
        'comparison': compare_execution(state),
        'hazards': [hazard_to_dict(h) for h in state.hazards],
        'settings': settings.to_dict(),
    }


def export_report(path, state, settings):
    report = build_report(state, settings)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(report, f, indent=2)
    logger.info("Report written to %s", path)
    return report


def format_timing_table(state, width=22):
    names = [s.name for s in STAGES]
    lines = [f"{'Cycle':<6}" + ''.join(f"{n:<{width}}" for n in names),
             "-" * (6 + width * len(names))]
    for entry in state.pipeline_log:
        row = f"{entry['cycle']:<6}"
        for n in names:
            cell = entry['stages'][n] or "-"
            row += f"{cell[:width - 1]:<{width}}"
        if entry['stalled']:
            row += " stall"
        lines.append(row)
    return "\n".join(lines)


def format_statistics(state):
    m = calculate_metrics(state)
    cmp = compare_execution(state)
    return "\n".join([
        f"Total Clock Cycles:     {m['totalCycles']}",
        f"Instructions Executed:  {m['instructionsExecuted']}",
        f"CPI:                    {m['cpi']:.2f}",
        f"EX Stall Cycles:        {state.stall_cycles}",
        f"Unresolved Hazards:     {m['stallCycles']}",
        f"  - Data:               {m['dataHazardStalls']}",
        f"  - Control:            {m['controlHazardStalls']}",
        f"  - Structural:         {m['structuralHazardStalls']}",
        f"Speedup vs sequential:  {m['speedup']:.2f}",
        f"Efficiency:             {m['efficiency']:.1f}%",
        f"Hazard overhead:        {cmp['hazardOverhead']} cycles",
    ])


def format_registers(state, only_nonzero=True):
    return "\n".join(f"{r.name:>3} = {r.value}" for r in state.registers
                     if r.value or not only_nonzero)
