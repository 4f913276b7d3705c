import copy
import random
from enum import Enum
from collections import namedtuple
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional

from isa import Opcode, Stage, STAGES, PC_BASE, REG_COUNT, WORD_SIZE

MEMORY_BASE = 0x10000000
MEMORY_WORDS = 16
MODIFIED_WINDOW = 3     # cycles a register/memory word stays flagged as modified


class HazardType(Enum):
    DATA = "data"
    CONTROL = "control"
    STRUCTURAL = "structural"


class HazardSubtype(Enum):
    RAW = "RAW"
    WAR = "WAR"
    WAW = "WAW"
    BRANCH = "branch"
    RESOURCE = "resource"


Hazard = namedtuple('Hazard', 'type subtype instruction1 instruction2 description resolved cycle')


@dataclass
class Instruction:
    id: str
    pc: int
    opcode: Opcode
    operands: List[str]
    type: str
    raw: str
    cycle: int = 0
    stage: Optional[Stage] = None
    completed: bool = False


@dataclass
class Register:
    name: str
    value: int
    modified: bool = False
    last_modified_cycle: int = 0


@dataclass
class MemoryLocation:
    address: int
    value: int
    modified: bool = False
    last_modified_cycle: int = 0


@dataclass
class SimulationSettings:
    forwarding_enabled: bool = True
    branch_prediction_enabled: bool = False
    speed: int = 5
    step_mode: bool = False

    @property
    def interval_ms(self):
        """Delay between automatic steps; speed 1 is slowest, 10 fastest."""
        speed = min(max(int(self.speed), 1), 10)
        return 1100 - speed * 100

    def to_dict(self):
        return asdict(self)


def empty_pipeline():
    return {stage: None for stage in STAGES}


def initial_registers(rng=None):
    rng = rng or random.Random()
    # R0 starts at zero; the rest hold arbitrary values
    return [Register(f"R{i}", 0 if i == 0 else rng.randrange(0x1000))
            for i in range(REG_COUNT)]


def initial_memory(rng=None):
    rng = rng or random.Random()
    return [MemoryLocation(MEMORY_BASE + i * WORD_SIZE, rng.randrange(0xFFFFFFFF))
            for i in range(MEMORY_WORDS)]


@dataclass
class SimulationState:
    current_cycle: int = 0
    pc: int = PC_BASE
    instructions: List[Instruction] = field(default_factory=list)
    registers: List[Register] = field(default_factory=initial_registers)
    memory: List[MemoryLocation] = field(default_factory=initial_memory)
    pipeline: Dict[Stage, Optional[Instruction]] = field(default_factory=empty_pipeline)
    hazards: List[Hazard] = field(default_factory=list)
    is_running: bool = False
    is_paused: bool = False
    completed_instructions: int = 0
    stall_cycles: int = 0
    forwarding_enabled: bool = True
    branch_prediction_enabled: bool = False
    pipeline_log: List[dict] = field(default_factory=list)

    def copy(self):
        """Deep snapshot; mutating it never touches the original."""
        return copy.deepcopy(self)

    def occupied(self):
        return [ins for ins in self.pipeline.values() if ins is not None]

    def find_memory(self, address):
        for loc in self.memory:
            if loc.address == address:
                return loc
        return None
