import re
from enum import Enum
from collections import namedtuple

PC_BASE = 0x400000          # first instruction address
WORD_SIZE = 4
REG_COUNT = 32
PIPELINE_DEPTH = 5


class Stage(Enum):
    IF = "Instruction Fetch"
    ID = "Instruction Decode"
    EX = "Execute"
    MEM = "Memory Access"
    WB = "Write Back"


# fetch order; the engine walks it backwards each cycle
STAGES = (Stage.IF, Stage.ID, Stage.EX, Stage.MEM, Stage.WB)


class Opcode(Enum):
    ADD = "ADD"
    SUB = "SUB"
    AND = "AND"
    OR = "OR"
    LW = "LW"
    SW = "SW"
    BEQ = "BEQ"
    BNE = "BNE"
    J = "J"
    NOP = "NOP"


# Per-opcode semantics. reads/writes are operand indices.
OpcodeInfo = namedtuple('OpcodeInfo', 'format operand_count reads writes kind')

OPCODE_INFO = {
    Opcode.ADD: OpcodeInfo('R', 3, (1, 2), (0,), 'alu'),
    Opcode.SUB: OpcodeInfo('R', 3, (1, 2), (0,), 'alu'),
    Opcode.AND: OpcodeInfo('R', 3, (1, 2), (0,), 'alu'),
    Opcode.OR:  OpcodeInfo('R', 3, (1, 2), (0,), 'alu'),
    Opcode.LW:  OpcodeInfo('I', 3, (2,), (0,), 'load'),
    Opcode.SW:  OpcodeInfo('I', 3, (0, 2), (), 'store'),
    Opcode.BEQ: OpcodeInfo('I', 3, (0, 1), (), 'branch'),
    Opcode.BNE: OpcodeInfo('I', 3, (0, 1), (), 'branch'),
    Opcode.J:   OpcodeInfo('J', 1, (), (), 'jump'),
    Opcode.NOP: OpcodeInfo('R', 0, (), (), 'nop'),
}

ALU_OPCODES = frozenset(op for op, info in OPCODE_INFO.items() if info.kind == 'alu')
MEMORY_OPCODES = frozenset((Opcode.LW, Opcode.SW))
CONTROL_OPCODES = frozenset((Opcode.BEQ, Opcode.BNE, Opcode.J))

REGISTER_RE = re.compile(r'^R\d+$', re.IGNORECASE)
_REGISTER_NUM_RE = re.compile(r'R(\d+)', re.IGNORECASE)


def lookup_opcode(token):
    """Return the Opcode for a mnemonic, or None if it is not supported."""
    try:
        return Opcode(token.upper())
    except ValueError:
        return None


def register_index(name):
    """Index of an `R<n>` register name, or -1 when it names no register."""
    if not name:
        return -1
    m = _REGISTER_NUM_RE.search(name)
    if not m:
        return -1
    idx = int(m.group(1))
    return idx if idx < REG_COUNT else -1


def parse_offset(text):
    """Numeric value of an immediate operand; anything unparsable counts as 0."""
    for base in (0, 10):
        try:
            return int(text.strip(), base)
        except (AttributeError, ValueError):
            continue
    return 0
