#!/usr/bin/env python3
import random
import logging

from isa import Opcode, Stage, PC_BASE, WORD_SIZE, OPCODE_INFO, register_index, parse_offset
from models import (SimulationState, MODIFIED_WINDOW, empty_pipeline,
                    initial_registers, initial_memory)
from instruction_parser import parse_assembly, get_register_dependencies
from hazards import detect_data_hazards, detect_control_hazards, needs_stall

logger = logging.getLogger(__name__)


class PipelineEngine:
    """Five-stage pipeline stepped one cycle at a time.

    Owns a SimulationState; every value handed out (step, get_state) is a
    deep copy, so callers can keep snapshots across cycles.
    """

    def __init__(self, seed=None, state=None):
        self.seed = seed
        self.rng = random.Random(seed)
        self.state = state if state is not None else self._initial_state()

    def _initial_state(self):
        return SimulationState(registers=initial_registers(self.rng),
                               memory=initial_memory(self.rng))

    # ------------------------------------------------------------------
    # lifecycle

    def load_program(self, text):
        try:
            instructions = parse_assembly(text)
        except (TypeError, ValueError) as exc:
            logger.error("Failed to load program: %s", exc)
            return False
        s = self.state
        s.instructions = instructions
        s.pc = PC_BASE
        s.current_cycle = 0
        s.completed_instructions = 0
        s.stall_cycles = 0
        s.hazards = []
        s.pipeline_log = []
        s.pipeline = empty_pipeline()
        logger.info("Loaded %d instructions", len(instructions))
        return True

    def get_state(self):
        return self.state.copy()

    def set_state(self, **partial):
        for name, value in partial.items():
            if not hasattr(self.state, name):
                raise AttributeError(f"SimulationState has no field {name!r}")
            setattr(self.state, name, value)

    def apply_settings(self, settings):
        self.set_state(forwarding_enabled=settings.forwarding_enabled,
                       branch_prediction_enabled=settings.branch_prediction_enabled)

    def reset(self):
        self.rng = random.Random(self.seed)
        self.state = self._initial_state()

    def is_complete(self):
        s = self.state
        return (s.completed_instructions == len(s.instructions)
                and all(ins is None for ins in s.pipeline.values()))

    def _next_instruction(self):
        idx = (self.state.pc - PC_BASE) // WORD_SIZE
        if 0 <= idx < len(self.state.instructions):
            return self.state.instructions[idx]
        return None

    # ------------------------------------------------------------------
    # one cycle

    def step(self):
        self._cycle()
        return self.get_state()

    def _cycle(self):
        s = self.state
        # WB of the previous cycle's occupant closes that cycle
        self._write_back()
        if not s.occupied() and self._next_instruction() is None:
            return

        s.current_cycle += 1
        self._memory_access()
        stalled = self._execute()
        self._decode()
        self._fetch()
        self._age_flags()

        s.pipeline_log.append({
            'cycle': s.current_cycle,
            'stages': {stage.name: (ins.raw if ins else None) for stage, ins in s.pipeline.items()},
            'pc': s.pc,
            'stalled': stalled,
        })
        logger.debug("[Cycle %2d] %s%s", s.current_cycle,
                     ' | '.join(ins.raw if ins else '--' for ins in s.pipeline.values()),
                     ' (stall)' if stalled else '')

    def _move(self, src, dst):
        pipe = self.state.pipeline
        ins = pipe[src]
        pipe[dst], pipe[src] = ins, None
        ins.stage = dst

    def _write_back(self):
        s = self.state
        ins = s.pipeline[Stage.WB]
        if ins is None:
            return
        _, writes = get_register_dependencies(ins)
        if writes:
            idx = register_index(writes[0])
            # R0 is hardwired to zero
            if idx > 0:
                reg = s.registers[idx]
                reg.value = self._result(ins)
                reg.modified = True
                reg.last_modified_cycle = s.current_cycle
        ins.completed = True
        ins.stage = None
        s.completed_instructions += 1
        s.pipeline[Stage.WB] = None

    def _memory_access(self):
        s = self.state
        ins = s.pipeline[Stage.MEM]
        if ins is None:
            return
        if ins.opcode == Opcode.SW:
            loc = s.find_memory(self._address(ins))
            if loc is not None:
                loc.value = self._reg_value(ins.operands[0] if ins.operands else None)
                loc.modified = True
                loc.last_modified_cycle = s.current_cycle
        # LW reads here but the value lands in the register at WB
        self._move(Stage.MEM, Stage.WB)

    def _execute(self):
        s = self.state
        ins = s.pipeline[Stage.EX]
        if ins is None:
            return False
        hazards = detect_data_hazards(ins, s.pipeline, s.forwarding_enabled, s.current_cycle)
        s.hazards.extend(hazards)
        if needs_stall(hazards):
            s.stall_cycles += 1
            return True
        self._move(Stage.EX, Stage.MEM)
        return False

    def _decode(self):
        s = self.state
        ins = s.pipeline[Stage.ID]
        if ins is None:
            return
        s.hazards.extend(detect_control_hazards(ins, s.branch_prediction_enabled, s.current_cycle))
        if s.pipeline[Stage.EX] is None:
            self._move(Stage.ID, Stage.EX)

    def _fetch(self):
        s = self.state
        if s.pipeline[Stage.IF] is not None and s.pipeline[Stage.ID] is None:
            self._move(Stage.IF, Stage.ID)
        if s.pipeline[Stage.IF] is not None:
            return
        ins = self._next_instruction()
        if ins is not None:
            ins.cycle = s.current_cycle
            ins.stage = Stage.IF
            s.pipeline[Stage.IF] = ins
            s.pc += WORD_SIZE

    def _age_flags(self):
        s = self.state
        for item in s.registers + s.memory:
            if item.modified and s.current_cycle - item.last_modified_cycle > MODIFIED_WINDOW:
                item.modified = False

    # ------------------------------------------------------------------
    # operand evaluation; bad operands degrade to 0

    def _reg_value(self, name):
        idx = register_index(name)
        return self.state.registers[idx].value if idx >= 0 else 0

    def _address(self, ins):
        ops = ins.operands
        offset = parse_offset(ops[1]) if len(ops) > 1 else 0
        base = self._reg_value(ops[2]) if len(ops) > 2 else 0
        return base + offset

    def _result(self, ins):
        op, a = ins.opcode, ins.operands
        if OPCODE_INFO[op].kind == 'alu':
            x = self._reg_value(a[1] if len(a) > 1 else None)
            y = self._reg_value(a[2] if len(a) > 2 else None)
            if op == Opcode.ADD: return x + y
            if op == Opcode.SUB: return x - y
            if op == Opcode.AND: return x & y
            if op == Opcode.OR: return x | y
        if op == Opcode.LW:
            loc = self.state.find_memory(self._address(ins))
            return loc.value if loc else 0
        return 0

    def run(self, max_cycles=10000):
        """Step until complete; returns the final snapshot."""
        while not self.is_complete() and self.state.current_cycle < max_cycles:
            self._cycle()
        return self.get_state()


def advance(state):
    """Pure single-cycle transition: returns the next state, `state` is untouched."""
    engine = PipelineEngine(state=state.copy())
    return engine.step()
