import re
import logging

from isa import OPCODE_INFO, Opcode, PC_BASE, WORD_SIZE, REGISTER_RE, lookup_opcode
from models import Instruction

logger = logging.getLogger(__name__)

COMMENT_MARKERS = ('//', '#')
MEM_OPERAND_RE = re.compile(r'(.+)\((.+)\)')


def strip_comment(line):
    for marker in COMMENT_MARKERS:
        line = line.split(marker)[0]
    return line.strip()


def _source_lines(text):
    """Trimmed lines that are neither blank nor full-line comments."""
    lines = []
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith(COMMENT_MARKERS):
            continue
        lines.append(line)
    return lines


def _normalize(operand):
    # r1 and R1 name the same register
    return operand.upper() if REGISTER_RE.match(operand) else operand


def parse_operands(operand_text, opcode):
    parts = [_normalize(p.strip()) for p in operand_text.split(',')]
    if opcode not in (Opcode.LW, Opcode.SW) or '(' not in operand_text:
        return parts
    # LW/SW: "rt, offset(base)" -> [rt, offset, base]
    operands = []
    for part in parts:
        m = MEM_OPERAND_RE.match(part)
        if m:
            operands.append(m.group(1).strip())
            operands.append(_normalize(m.group(2).strip()))
        else:
            operands.append(part)
    return operands


def parse_line(line, pc, ident):
    clean = strip_comment(line)
    parts = clean.split()
    if not parts:
        raise ValueError(f"Empty instruction: {line!r}")
    opcode = lookup_opcode(parts[0])
    if opcode is None:
        raise ValueError(f"Unknown opcode: {parts[0].upper()}")

    operands = []
    if len(parts) > 1:
        operands = parse_operands(' '.join(parts[1:]), opcode)

    return Instruction(id=ident, pc=pc, opcode=opcode, operands=operands,
                       type=OPCODE_INFO[opcode].format, raw=clean)


def parse_assembly(text):
    """Translate assembly text into an ordered list of Instructions.

    Lines that fail to parse are logged and skipped; the rest of the
    program still loads. Only a non-string input raises (TypeError).
    """
    if not isinstance(text, str):
        raise TypeError(f"program text must be str, not {type(text).__name__}")

    instructions = []
    pc = PC_BASE
    for i, line in enumerate(_source_lines(text)):
        try:
            ins = parse_line(line, pc, str(i))
        except ValueError as exc:
            logger.warning("Failed to parse line %d: %s (%s)", i + 1, line, exc)
            continue
        instructions.append(ins)
        pc += WORD_SIZE
    return instructions


def get_register_dependencies(instruction):
    """Return (reads, writes): register names the instruction uses and defines."""
    info = OPCODE_INFO[instruction.opcode]
    ops = instruction.operands
    reads = [ops[i] for i in info.reads if i < len(ops)]
    writes = [ops[i] for i in info.writes if i < len(ops)]
    return reads, writes


def validate_instruction(instruction):
    info = OPCODE_INFO.get(instruction.opcode)
    if info is None:
        return False
    ops = instruction.operands
    if len(ops) != info.operand_count:
        return False
    if info.kind == 'alu':
        return all(REGISTER_RE.match(op) for op in ops)
    return True


def check_program(text):
    """Lines (1-based number, text) whose first word is not a known opcode."""
    bad = []
    for n, line in enumerate(_source_lines(text), 1):
        words = strip_comment(line).split()
        if not words or lookup_opcode(words[0]) is None:
            bad.append((n, line))
    return bad
