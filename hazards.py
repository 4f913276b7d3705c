from isa import Opcode, Stage, ALU_OPCODES, MEMORY_OPCODES, CONTROL_OPCODES
from models import Hazard, HazardType, HazardSubtype
from instruction_parser import get_register_dependencies

# stages an instruction in EX is checked against
DATA_HAZARD_STAGES = (Stage.EX, Stage.MEM, Stage.WB)


def _can_forward(producer, consumer, forwarding_enabled):
    if not forwarding_enabled:
        return False
    # load-use: the loaded value is not available in time to bypass
    if producer.opcode == Opcode.LW:
        return False
    return producer.opcode in ALU_OPCODES


def detect_data_hazards(instruction, pipeline, forwarding_enabled, cycle=None):
    """RAW/WAR/WAW hazards between `instruction` and the EX/MEM/WB occupants.

    One Hazard is produced per matching register pair. The instruction is
    never compared against itself. `cycle` defaults to the instruction's
    fetch cycle.
    """
    if cycle is None:
        cycle = instruction.cycle
    hazards = []
    reads, writes = get_register_dependencies(instruction)

    for stage in DATA_HAZARD_STAGES:
        other = pipeline.get(stage)
        if other is None or other is instruction:
            continue
        other_reads, other_writes = get_register_dependencies(other)

        for reg in reads:
            for wreg in other_writes:
                if reg == wreg:
                    hazards.append(Hazard(
                        HazardType.DATA, HazardSubtype.RAW, other.raw, instruction.raw,
                        f"{instruction.raw} reads {reg} written by {other.raw}",
                        _can_forward(other, instruction, forwarding_enabled), cycle))

        for reg in writes:
            for rreg in other_reads:
                if reg == rreg:
                    # treated as removed by register renaming
                    hazards.append(Hazard(
                        HazardType.DATA, HazardSubtype.WAR, other.raw, instruction.raw,
                        f"{instruction.raw} writes {reg} read by {other.raw}",
                        True, cycle))

        for reg in writes:
            for wreg in other_writes:
                if reg == wreg:
                    hazards.append(Hazard(
                        HazardType.DATA, HazardSubtype.WAW, other.raw, instruction.raw,
                        f"Both instructions write to {reg}",
                        False, cycle))
    return hazards


def detect_control_hazards(instruction, branch_prediction_enabled, cycle=None):
    if instruction.opcode not in CONTROL_OPCODES:
        return []
    if cycle is None:
        cycle = instruction.cycle
    return [Hazard(HazardType.CONTROL, HazardSubtype.BRANCH, instruction.raw, '',
                   f"Branch instruction {instruction.raw} causes control hazard",
                   bool(branch_prediction_enabled), cycle)]


def detect_structural_hazards(pipeline, cycle=None):
    """Memory port conflict: MEM holds a load/store while IF is fetching.

    Not part of the engine's cycle; callers run it on a snapshot.
    """
    mem_ins = pipeline.get(Stage.MEM)
    if_ins = pipeline.get(Stage.IF)
    if mem_ins is None or if_ins is None or mem_ins.opcode not in MEMORY_OPCODES:
        return []
    if cycle is None:
        cycle = mem_ins.cycle
    return [Hazard(HazardType.STRUCTURAL, HazardSubtype.RESOURCE, mem_ins.raw, if_ins.raw,
                   "Memory access conflict between MEM and IF stages", False, cycle)]


def needs_stall(hazards):
    return any(h.type == HazardType.DATA and h.subtype == HazardSubtype.RAW and not h.resolved
               for h in hazards)


def get_stall_cycles(instruction, pipeline):
    """Bubbles a load-use dependency on the LW currently in EX would cost."""
    producer = pipeline.get(Stage.EX)
    if producer is None or producer is instruction or producer.opcode != Opcode.LW:
        return 0
    reads, _ = get_register_dependencies(instruction)
    _, writes = get_register_dependencies(producer)
    return 1 if any(reg in writes for reg in reads) else 0
