from collections import Counter

from isa import PIPELINE_DEPTH
from models import HazardType, HazardSubtype

# fill cycles before the first instruction retires
FILL_CYCLES = PIPELINE_DEPTH - 1

BREAKDOWN_LABELS = {
    HazardSubtype.RAW: 'RAW',
    HazardSubtype.WAR: 'WAR',
    HazardSubtype.WAW: 'WAW',
    HazardSubtype.BRANCH: 'Branch',
    HazardSubtype.RESOURCE: 'Structural',
}


def _unresolved(hazards, hazard_type):
    # the log holds one entry per cycle a condition persists, so this
    # counts cycle-hazard occurrences rather than distinct hazards
    return sum(1 for h in hazards if h.type == hazard_type and not h.resolved)


def calculate_metrics(state):
    cycles = state.current_cycle
    executed = state.completed_instructions
    total = len(state.instructions)

    cpi = cycles / executed if executed > 0 else 0
    data = _unresolved(state.hazards, HazardType.DATA)
    control = _unresolved(state.hazards, HazardType.CONTROL)
    structural = _unresolved(state.hazards, HazardType.STRUCTURAL)

    sequential = total * PIPELINE_DEPTH
    speedup = sequential / max(cycles, 1) if sequential > 0 else 1
    efficiency = (total + FILL_CYCLES) / max(cycles, 1) * 100

    return {
        'totalCycles': cycles,
        'instructionsExecuted': executed,
        'cpi': round(cpi, 2),
        'stallCycles': data + control + structural,
        'dataHazardStalls': data,
        'controlHazardStalls': control,
        'structuralHazardStalls': structural,
        'speedup': round(speedup, 2),
        'efficiency': round(efficiency, 1),
    }


def get_detailed_analysis(state):
    """Hazards bucketed by subtype and instructions by format class."""
    breakdown = {label: 0 for label in BREAKDOWN_LABELS.values()}
    for h in state.hazards:
        breakdown[BREAKDOWN_LABELS[h.subtype]] += 1

    types = dict(Counter(ins.type for ins in state.instructions))

    cycle_eff = 0
    if state.instructions and state.current_cycle > 0:
        cycle_eff = state.completed_instructions / state.current_cycle * 100

    return {
        'hazardBreakdown': breakdown,
        'instructionTypes': types,
        'cycleEfficiency': round(cycle_eff, 1),
    }


def compare_execution(state):
    total = len(state.instructions)
    ideal = total + FILL_CYCLES
    actual = state.current_cycle
    return {
        'sequential': total * PIPELINE_DEPTH,
        'idealPipelined': ideal,
        'actualPipelined': actual,
        'hazardOverhead': max(0, actual - ideal),
    }
