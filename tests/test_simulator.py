import copy
import unittest
from unittest import mock

from isa import Stage, PC_BASE
from models import HazardSubtype, MEMORY_BASE, SimulationState
from simulator import PipelineEngine, advance


def run(program, forwarding=True, prediction=False, seed=1):
    engine = PipelineEngine(seed=seed)
    engine.set_state(forwarding_enabled=forwarding, branch_prediction_enabled=prediction)
    assert engine.load_program(program)
    engine.run()
    return engine


def hazard_free(n):
    pair = ["ADD R1, R2, R3", "ADD R4, R5, R6"]
    return "\n".join(pair[i % 2] for i in range(n))


class LifecycleTest(unittest.TestCase):
    def test_empty_program_is_complete(self):
        engine = PipelineEngine(seed=0)
        self.assertTrue(engine.load_program(""))
        self.assertTrue(engine.is_complete())
        state = engine.step()
        self.assertEqual(state.current_cycle, 0)
        self.assertEqual(state.pipeline_log, [])

    def test_load_failure_returns_false(self):
        engine = PipelineEngine(seed=0)
        with self.assertLogs('simulator', level='ERROR'):
            self.assertFalse(engine.load_program(None))

    def test_load_resets_run_but_keeps_storage(self):
        engine = run("LW R1, 0(R2)\nADD R3, R1, R4")
        regs = [r.value for r in engine.state.registers]
        mem = [m.value for m in engine.state.memory]
        self.assertTrue(engine.load_program("NOP"))
        s = engine.state
        self.assertEqual((s.current_cycle, s.pc, s.completed_instructions, s.stall_cycles), (0, PC_BASE, 0, 0))
        self.assertEqual(s.hazards, [])
        self.assertEqual(s.pipeline_log, [])
        self.assertTrue(all(ins is None for ins in s.pipeline.values()))
        self.assertEqual([r.value for r in s.registers], regs)
        self.assertEqual([m.value for m in s.memory], mem)

    def test_reset_restores_seeded_initial_state(self):
        fresh = PipelineEngine(seed=42).get_state()
        engine = run("ADD R1, R2, R3", seed=42)
        engine.reset()
        s = engine.get_state()
        self.assertEqual(s.instructions, [])
        self.assertEqual(s.current_cycle, 0)
        self.assertEqual([r.value for r in s.registers], [r.value for r in fresh.registers])
        self.assertEqual([m.value for m in s.memory], [m.value for m in fresh.memory])

    def test_initial_storage_shape(self):
        s = PipelineEngine(seed=3).state
        self.assertEqual(len(s.registers), 32)
        self.assertEqual(s.registers[0].value, 0)
        self.assertEqual(s.registers[31].name, "R31")
        self.assertEqual(len(s.memory), 16)
        self.assertEqual(s.memory[0].address, MEMORY_BASE)
        self.assertEqual(s.memory[15].address, MEMORY_BASE + 60)
        self.assertTrue(s.forwarding_enabled)
        self.assertFalse(s.branch_prediction_enabled)

    def test_set_state_rejects_unknown_fields(self):
        with self.assertRaises(AttributeError):
            PipelineEngine().set_state(no_such_field=1)


class SnapshotTest(unittest.TestCase):
    def test_step_returns_detached_copy(self):
        engine = PipelineEngine(seed=0)
        engine.load_program("ADD R1, R2, R3")
        snap = engine.step()
        snap.registers[1].value = -1
        snap.pipeline[Stage.IF] = None
        self.assertNotEqual(engine.state.registers[1].value, -1)
        self.assertIsNotNone(engine.state.pipeline[Stage.IF])

    def test_snapshot_keeps_instruction_identity(self):
        engine = PipelineEngine(seed=0)
        engine.load_program("ADD R1, R2, R3")
        snap = engine.step()
        self.assertIs(snap.pipeline[Stage.IF], snap.instructions[0])

    def test_advance_is_pure(self):
        engine = PipelineEngine(seed=0)
        engine.load_program("ADD R1, R2, R3\nNOP")
        before = engine.get_state()
        after = advance(before)
        self.assertEqual(before.current_cycle, 0)
        self.assertIsNone(before.pipeline[Stage.IF])
        self.assertEqual(after.current_cycle, 1)
        self.assertEqual(after.pipeline[Stage.IF].raw, "ADD R1, R2, R3")


class FlowTest(unittest.TestCase):
    def test_stage_progression(self):
        engine = PipelineEngine(seed=0)
        engine.load_program("ADD R1, R2, R3")
        ins = engine.state.instructions[0]
        seen = []
        while not engine.is_complete():
            engine.step()
            seen.append(ins.stage)
        self.assertEqual(seen, [Stage.IF, Stage.ID, Stage.EX, Stage.MEM, Stage.WB, None])
        self.assertTrue(ins.completed)
        self.assertEqual(ins.cycle, 1)

    def test_hazard_free_takes_n_plus_four_cycles(self):
        for n in (1, 4, 40):
            engine = run(hazard_free(n), forwarding=False)
            s = engine.state
            self.assertEqual(s.current_cycle, n + 4)
            self.assertEqual(s.completed_instructions, n)
            self.assertEqual(s.stall_cycles, 0)
        self.assertLess(s.current_cycle / s.completed_instructions, 1.2)

    def test_run_takes_a_single_snapshot(self):
        engine = PipelineEngine(seed=0)
        engine.load_program(hazard_free(300))
        with mock.patch.object(SimulationState, 'copy', autospec=True,
                               side_effect=copy.deepcopy) as snapshot:
            state = engine.run()
        self.assertEqual(state.current_cycle, 304)
        self.assertEqual(snapshot.call_count, 1)

    def test_program_counter_advances_per_fetch(self):
        engine = PipelineEngine(seed=0)
        engine.load_program("LW R1, 0(R2)\nADD R3, R1, R4\nSUB R5, R3, R6\nNOP")
        engine.set_state(forwarding_enabled=False)
        fetched = 0
        while not engine.is_complete():
            prev = engine.state.pc
            s = engine.step()
            head = s.pipeline[Stage.IF]
            did_fetch = head is not None and head.cycle == s.current_cycle
            fetched += did_fetch
            self.assertEqual(s.pc - prev, 4 if did_fetch else 0)
            self.assertEqual(s.pc, PC_BASE + 4 * fetched)
        self.assertEqual(fetched, 4)

    def test_conservation_and_terminal_step(self):
        engine = PipelineEngine(seed=5)
        engine.load_program("LW R1, 0(R2)\nADD R3, R1, R4\nBEQ R3, R5, 8\nSW R3, 4(R2)")
        while not engine.is_complete():
            s = engine.step()
            self.assertLessEqual(s.completed_instructions, len(s.instructions))
            occupants = [i for i in s.pipeline.values() if i is not None]
            self.assertEqual(len(occupants), len(set(map(id, occupants))))
        done = engine.get_state()
        again = engine.step()
        self.assertEqual(again.current_cycle, done.current_cycle)
        self.assertTrue(all(i is None for i in again.pipeline.values()))
        self.assertEqual(again.completed_instructions, 4)


class HazardHandlingTest(unittest.TestCase):
    def test_forwarded_raw_does_not_stall(self):
        s = run("ADD R1, R2, R3\nSUB R4, R1, R5", forwarding=True).state
        raw = [h for h in s.hazards if h.subtype == HazardSubtype.RAW]
        self.assertEqual(len(raw), 1)
        self.assertTrue(raw[0].resolved)
        self.assertEqual(s.stall_cycles, 0)
        self.assertEqual(s.current_cycle, 6)

    def test_raw_without_forwarding_stalls(self):
        s = run("ADD R1, R2, R3\nSUB R4, R1, R5", forwarding=False).state
        raw = [h for h in s.hazards if h.subtype == HazardSubtype.RAW]
        self.assertEqual(len(raw), 1)
        self.assertFalse(raw[0].resolved)
        self.assertEqual(raw[0].cycle, 5)
        self.assertEqual(s.stall_cycles, 1)
        self.assertEqual(s.current_cycle, 7)

    def test_load_use_stalls_even_with_forwarding(self):
        s = run("LW R1, 0(R2)\nADD R3, R1, R4", forwarding=True).state
        raw = [h for h in s.hazards if h.subtype == HazardSubtype.RAW]
        self.assertTrue(raw)
        self.assertFalse(any(h.resolved for h in raw))
        self.assertGreaterEqual(s.stall_cycles, 1)

    def test_register_case_does_not_hide_hazards(self):
        upper = run("LW R1, 0(R2)\nADD R3, R1, R4").state
        mixed = run("lw r1, 0(r2)\nadd r3, R1, r4").state
        for s in (upper, mixed):
            raw = [h for h in s.hazards if h.subtype == HazardSubtype.RAW]
            self.assertEqual(len(raw), 1)
            self.assertEqual(s.stall_cycles, 1)
            self.assertEqual(s.current_cycle, 7)

    def test_stalled_instruction_is_not_overwritten(self):
        engine = PipelineEngine(seed=0)
        engine.set_state(forwarding_enabled=False)
        engine.load_program("ADD R1, R2, R3\nSUB R4, R1, R5\nOR R6, R7, R8")
        engine.run()
        s = engine.state
        stalled = [e for e in s.pipeline_log if e['stalled']]
        self.assertEqual(len(stalled), 1)
        self.assertEqual(stalled[0]['cycle'], 5)
        self.assertEqual(stalled[0]['stages']['EX'], "SUB R4, R1, R5")
        self.assertEqual(stalled[0]['stages']['ID'], "OR R6, R7, R8")
        self.assertTrue(all(i.completed for i in s.instructions))
        self.assertEqual(s.current_cycle, 8)

    def test_control_hazard_relogged_while_held_in_decode(self):
        s = run("ADD R1, R2, R3\nSUB R4, R1, R5\nBEQ R4, R0, 8", forwarding=False).state
        control = [h for h in s.hazards if h.subtype == HazardSubtype.BRANCH]
        self.assertEqual([h.cycle for h in control], [5, 6])
        self.assertFalse(any(h.resolved for h in control))
        self.assertEqual(s.stall_cycles, 2)
        self.assertEqual(s.current_cycle, 9)

    def test_branch_prediction_resolves_control_hazards(self):
        s = run("BEQ R1, R2, 8\nJ 0", prediction=True).state
        control = [h for h in s.hazards if h.subtype == HazardSubtype.BRANCH]
        self.assertEqual(len(control), 2)
        self.assertTrue(all(h.resolved for h in control))

    def test_settings_apply_on_next_step(self):
        engine = PipelineEngine(seed=0)
        engine.load_program("ADD R1, R2, R3\nSUB R4, R1, R5")
        for _ in range(4):
            engine.step()
        engine.set_state(forwarding_enabled=False)
        engine.step()
        self.assertEqual(engine.state.stall_cycles, 1)

    def test_determinism(self):
        program = "LW R1, 0(R2)\nADD R3, R1, R4\nBEQ R3, R5, 8\nSW R3, 4(R2)\nADD R6, R3, R7"
        a, b = run(program, seed=11).state, run(program, seed=11).state
        self.assertEqual(a.current_cycle, b.current_cycle)
        self.assertEqual(a.hazards, b.hazards)
        self.assertEqual(a.pipeline_log, b.pipeline_log)
        self.assertEqual([r.value for r in a.registers], [r.value for r in b.registers])


class DatapathTest(unittest.TestCase):
    def engine_with(self, program, **regs):
        engine = PipelineEngine(seed=0)
        for name, value in regs.items():
            engine.state.registers[int(name[1:])].value = value
        engine.load_program(program)
        return engine

    def test_alu_results(self):
        engine = self.engine_with("ADD R1, R2, R3\nSUB R4, R2, R3\nAND R5, R2, R3\nOR R6, R2, R3",
                                  R2=12, R3=10)
        engine.run()
        values = [engine.state.registers[i].value for i in (1, 4, 5, 6)]
        self.assertEqual(values, [22, 2, 8, 14])

    def test_store_then_load(self):
        engine = self.engine_with("SW R3, 4(R2)\nLW R1, 4(R2)", R2=MEMORY_BASE, R3=77)
        engine.run()
        self.assertEqual(engine.state.memory[1].value, 77)
        self.assertEqual(engine.state.registers[1].value, 77)

    def test_out_of_range_memory_degrades(self):
        engine = self.engine_with("SW R3, 0(R2)\nLW R1, 0(R2)", R2=0, R3=5)
        before = [m.value for m in engine.state.memory]
        engine.run()
        self.assertEqual([m.value for m in engine.state.memory], before)
        self.assertEqual(engine.state.registers[1].value, 0)

    def test_bad_operands_degrade_to_zero(self):
        engine = self.engine_with("ADD R1, R99, Rx\nADD Rz, R1, R1", R1=3)
        engine.run()
        self.assertEqual(engine.state.registers[1].value, 0)
        self.assertTrue(engine.is_complete())

    def test_r0_is_hardwired(self):
        engine = self.engine_with("ADD R0, R1, R2", R1=4, R2=5)
        engine.run()
        self.assertEqual(engine.state.registers[0].value, 0)
        self.assertFalse(engine.state.registers[0].modified)

    def test_modified_flag_ages_out(self):
        engine = self.engine_with("ADD R1, R2, R3" + "\nNOP" * 5)
        for _ in range(6):
            engine.step()
        reg = engine.state.registers[1]
        self.assertTrue(reg.modified)
        self.assertEqual(reg.last_modified_cycle, 5)
        engine.run()
        self.assertFalse(reg.modified)


if __name__ == '__main__':
    unittest.main()
