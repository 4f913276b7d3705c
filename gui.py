from tkinter import filedialog

import customtkinter as ctk
from matplotlib.backends.backend_tkagg import FigureCanvasTkAgg

from isa import STAGES
from charts import STAGE_COLORS, CHARTS, make_figure
from instruction_parser import check_program
from models import SimulationSettings
from performance import calculate_metrics
from programs import SAMPLE_PROGRAMS, DEFAULT_PROGRAM
from report import export_report
from runner import Ticker
from simulator import PipelineEngine


ctk.set_appearance_mode("System")
ctk.set_default_color_theme("blue")

METRIC_LABELS = [
    ('totalCycles', "Total Cycles"),
    ('instructionsExecuted', "Instructions Executed"),
    ('cpi', "CPI"),
    ('stallCycles', "Unresolved Hazards"),
    ('dataHazardStalls', "Data"),
    ('controlHazardStalls', "Control"),
    ('structuralHazardStalls', "Structural"),
    ('speedup', "Speedup"),
    ('efficiency', "Efficiency"),
]


class PipelineSimulatorGUI:
    def __init__(self, root, seed=None, settings=None):
        self.root = root
        root.title("Pipeline Hazard Simulator")
        root.geometry("1200x780")

        self.settings = settings or SimulationSettings()
        self.engine = PipelineEngine(seed=seed)
        self.engine.apply_settings(self.settings)
        self.ticker = Ticker(self.engine, root, self.settings.interval_ms,
                             on_step=self._refresh, on_finish=self._finished)

        self._build_layout()
        self.editor.insert("1.0", SAMPLE_PROGRAMS[DEFAULT_PROGRAM])
        self.load()

    def _build_layout(self):
        self.left = ctk.CTkFrame(self.root)
        self.left.pack(side="left", fill="both", expand=True, padx=10, pady=10)

        self.right_frame = ctk.CTkFrame(self.root)
        self.right_frame.pack(side="right", fill="both", padx=10, pady=10)
        self.right = ctk.CTkScrollableFrame(self.right_frame, width=380)
        self.right.pack(fill="both", expand=True)

        # program editor
        ctk.CTkLabel(self.left, text="Program", font=ctk.CTkFont(size=16, weight="bold")).pack(pady=(10, 5))
        bar = ctk.CTkFrame(self.left)
        bar.pack(fill="x", padx=5)
        self.sample_menu = ctk.CTkOptionMenu(bar, values=list(SAMPLE_PROGRAMS), command=self._load_sample)
        self.sample_menu.set(DEFAULT_PROGRAM)
        self.sample_menu.grid(row=0, column=0, padx=5, pady=5)
        ctk.CTkButton(bar, text="Load Program", command=self.load).grid(row=0, column=1, padx=5, pady=5)
        self.status = ctk.CTkLabel(bar, text="")
        self.status.grid(row=0, column=2, padx=5, pady=5, sticky="w")
        self.editor = ctk.CTkTextbox(self.left, height=160, font=ctk.CTkFont(family="Courier", size=13))
        self.editor.pack(fill="x", padx=5, pady=5)

        # pipeline table
        ctk.CTkLabel(self.left, text="Pipeline Execution", font=ctk.CTkFont(size=16, weight="bold")).pack(pady=10)
        self._make_pipeline_header()
        self.table = ctk.CTkScrollableFrame(self.left)
        self.table.pack(fill="both", expand=True, padx=5, pady=5)

        # controls
        ctk.CTkLabel(self.right, text="Simulation Controls", font=ctk.CTkFont(size=16, weight="bold")).pack(pady=(10, 10))
        controls = ctk.CTkFrame(self.right)
        controls.pack(fill="x", pady=5)
        self.play_btn = ctk.CTkButton(controls, text="▶ Run", command=self.toggle)
        self.play_btn.grid(row=0, column=0, padx=5, pady=5)
        self.next_btn = ctk.CTkButton(controls, text="Step →", command=self.next)
        self.next_btn.grid(row=0, column=1, padx=5, pady=5)
        ctk.CTkButton(controls, text="Reset", fg_color="#e74c3c", hover_color="#c0392b",
                      command=self.reset).grid(row=1, column=0, padx=5, pady=5)
        ctk.CTkButton(controls, text="Export", command=self.export).grid(row=1, column=1, padx=5, pady=5)

        opts = ctk.CTkFrame(self.right)
        opts.pack(fill="x", pady=5)
        self.fwd_switch = ctk.CTkSwitch(opts, text="Forwarding", command=self._settings_changed)
        self.fwd_switch.grid(row=0, column=0, padx=5, pady=5, sticky="w")
        self.bp_switch = ctk.CTkSwitch(opts, text="Branch prediction", command=self._settings_changed)
        self.bp_switch.grid(row=0, column=1, padx=5, pady=5, sticky="w")
        if self.settings.forwarding_enabled:
            self.fwd_switch.select()
        if self.settings.branch_prediction_enabled:
            self.bp_switch.select()
        ctk.CTkLabel(opts, text="Speed:").grid(row=1, column=0, padx=5, pady=5, sticky="w")
        self.slider = ctk.CTkSlider(opts, from_=1, to=10, number_of_steps=9, command=self._set_speed)
        self.slider.grid(row=1, column=1, padx=5, pady=5, sticky="ew")
        self.slider.set(self.settings.speed)
        self.cycle_label = ctk.CTkLabel(opts, text="Cycle: 0")
        self.cycle_label.grid(row=2, column=0, columnspan=2, pady=5)

        ctk.CTkLabel(self.right, text="Performance Statistics", font=ctk.CTkFont(size=16, weight="bold")).pack(pady=10)
        self.stats_frame = ctk.CTkFrame(self.right)
        self.stats_frame.pack(fill="x", pady=5)
        ctk.CTkButton(self.right, text="Show Charts", command=self.show_charts).pack(pady=10, fill="x")

        tabs = ctk.CTkTabview(self.right)
        tabs.pack(fill="both", expand=True, pady=10)
        self.reg_frame = ctk.CTkScrollableFrame(tabs.add("Registers"))
        self.reg_frame.pack(fill="both", expand=True)
        self.mem_frame = ctk.CTkScrollableFrame(tabs.add("Memory"))
        self.mem_frame.pack(fill="both", expand=True)
        self.haz_frame = ctk.CTkScrollableFrame(tabs.add("Hazards"))
        self.haz_frame.pack(fill="both", expand=True)

    def _make_pipeline_header(self):
        frame = ctk.CTkFrame(self.left)
        frame.pack(fill="x", padx=5, pady=(5, 0))
        headers = ["Cycle"] + [s.name for s in STAGES]
        for i, h in enumerate(headers):
            color = STAGE_COLORS.get(h, "transparent")
            lbl = ctk.CTkLabel(frame, text=h, width=110, fg_color=color, corner_radius=6,
                               font=ctk.CTkFont(weight="bold"))
            lbl.grid(row=0, column=i, padx=2, pady=2)
            frame.grid_columnconfigure(i, weight=1)

    @staticmethod
    def _clear(frame):
        for w in frame.winfo_children():
            w.destroy()

    def _update_table(self, state):
        self._clear(self.table)
        for entry in state.pipeline_log:
            row = ctk.CTkFrame(self.table)
            row.pack(fill="x", pady=1)
            bg = "#f5b7b1" if entry['stalled'] else None
            ctk.CTkLabel(row, text=str(entry['cycle']), width=110, fg_color=bg).grid(row=0, column=0, padx=2)
            for j, stage in enumerate(STAGES):
                val = entry['stages'][stage.name]
                color = STAGE_COLORS[stage.name] if val else "transparent"
                ctk.CTkLabel(row, text=val or "--", width=110, fg_color=color,
                             corner_radius=6).grid(row=0, column=j + 1, padx=2)
            for k in range(len(STAGES) + 1):
                row.grid_columnconfigure(k, weight=1)

    def _update_stats(self, state):
        self._clear(self.stats_frame)
        metrics = calculate_metrics(state)
        for r, (key, label) in enumerate(METRIC_LABELS):
            v = metrics[key]
            text = f"{v:.1f}%" if key == 'efficiency' else str(v)
            ctk.CTkLabel(self.stats_frame, text=f"{label}:").grid(row=r, column=0, sticky="w", padx=5)
            ctk.CTkLabel(self.stats_frame, text=text).grid(row=r, column=1, sticky="e", padx=5)

    def _update_storage(self, state):
        self._clear(self.reg_frame)
        self._clear(self.mem_frame)
        self._clear(self.haz_frame)
        for reg in state.registers:
            f = ctk.CTkFrame(self.reg_frame, fg_color="#d5f5e3" if reg.modified else None)
            f.pack(fill="x", pady=1)
            ctk.CTkLabel(f, text=f"{reg.name}:", width=80).grid(row=0, column=0, sticky="w", padx=5)
            ctk.CTkLabel(f, text=str(reg.value), width=100).grid(row=0, column=1, sticky="e", padx=5)
        for loc in state.memory:
            f = ctk.CTkFrame(self.mem_frame, fg_color="#d5f5e3" if loc.modified else None)
            f.pack(fill="x", pady=1)
            ctk.CTkLabel(f, text=f"{loc.address:#010x}:", width=120).grid(row=0, column=0, sticky="w", padx=5)
            ctk.CTkLabel(f, text=str(loc.value), width=100).grid(row=0, column=1, sticky="e", padx=5)
        # newest first
        for h in reversed(state.hazards[-50:]):
            mark = "✓" if h.resolved else "✗"
            ctk.CTkLabel(self.haz_frame, text=f"[{h.cycle}] {mark} {h.subtype.value}: {h.description}",
                         anchor="w", wraplength=330, justify="left").pack(fill="x", padx=5)

    def _refresh(self, state=None):
        state = state or self.engine.get_state()
        self._update_table(state)
        self._update_stats(state)
        self._update_storage(state)
        self.cycle_label.configure(text=f"Cycle: {state.current_cycle}")

    def _finished(self, state):
        self.play_btn.configure(text="▶ Run")
        self.status.configure(text="Program complete")

    def _load_sample(self, name):
        self.editor.delete("1.0", "end")
        self.editor.insert("1.0", SAMPLE_PROGRAMS[name])

    def load(self):
        self.ticker.stop()
        text = self.editor.get("1.0", "end")
        bad = check_program(text)
        if bad:
            n, line = bad[0]
            self.status.configure(text=f"Line {n}: unknown opcode in '{line}'")
            return
        if not self.engine.load_program(text):
            self.status.configure(text="Failed to parse the program")
            return
        self.status.configure(text=f"Loaded {len(self.engine.state.instructions)} instructions")
        self.play_btn.configure(text="▶ Run")
        self._refresh()

    def _settings_changed(self):
        self.settings.forwarding_enabled = bool(self.fwd_switch.get())
        self.settings.branch_prediction_enabled = bool(self.bp_switch.get())
        self.engine.apply_settings(self.settings)

    def _set_speed(self, val):
        self.settings.speed = int(val)
        self.ticker.set_interval(self.settings.interval_ms)

    def toggle(self):
        if self.ticker.running:
            self.ticker.pause()
            self.play_btn.configure(text="▶ Run")
        else:
            self.ticker.start()
            self.play_btn.configure(text="⏸ Pause")

    def next(self):
        if self.ticker.step_once() is None:
            self.status.configure(text="Program complete")

    def reset(self):
        self.ticker.stop()
        self.engine.reset()
        self.engine.apply_settings(self.settings)
        self.load()

    def export(self):
        path = filedialog.asksaveasfilename(defaultextension=".json",
                                            filetypes=[("JSON", "*.json")])
        if path:
            export_report(path, self.engine.get_state(), self.settings)
            self.status.configure(text=f"Exported to {path}")

    def show_charts(self):
        state = self.engine.get_state()
        win = ctk.CTkToplevel(self.root)
        win.title("Pipeline Charts")
        win.geometry("900x600")
        tabs = ctk.CTkTabview(win)
        tabs.pack(fill="both", expand=True, padx=10, pady=10)
        for name, plot in CHARTS.items():
            canvas = FigureCanvasTkAgg(make_figure(state, plot), tabs.add(name))
            canvas.draw()
            canvas.get_tk_widget().pack(fill="both", expand=True)


def launch(seed=None, settings=None):
    app = ctk.CTk()
    PipelineSimulatorGUI(app, seed=seed, settings=settings)
    app.mainloop()
