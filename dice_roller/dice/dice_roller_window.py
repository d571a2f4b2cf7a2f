import tkinter as tk
from tkinter import messagebox
from typing import Callable, List, Tuple

import customtkinter as ctk
import numpy as np
from matplotlib import colormaps

from dice_roller.dice import catalog, dice_engine, get_roll_service
from dice_roller.dice.dice_engine import RollOutcome, RollRequest
from dice_roller.dice.dice_models import model_for, project_model
from dice_roller.dice.errors import DiceEngineError
from dice_roller.dice.roll_service import RollService
from dice_roller.dice.roll_state import RollPhase
from dice_roller.helpers.logging_helper import log_module_import

log_module_import(__name__)

CANVAS_BG = "#1b1210"
PANEL_BG = "#0e1621"
ACCENT = "#d4af37"


class DiceRollerWindow(ctk.CTkToplevel):

    def __init__(self, master: ctk.CTk, service: RollService | None = None):
        super().__init__(master)
        self.title("Dice Roller")
        self.geometry("1100x720")
        self.minsize(960, 640)
        self.configure(bg=PANEL_BG)

        self.service = service or get_roll_service()
        self._colormap = colormaps["plasma"]
        self._unsubscribers: List[Callable[[], None]] = []
        self._kinds = self.service.list_dice_kinds()
        self._labels_to_ids = {kind.display_label: kind.id for kind in self._kinds}
        self._ids_to_labels = {kind.id: kind.display_label for kind in self._kinds}

        self.dice_selection_var = ctk.StringVar(value=self._ids_to_labels[self.service.active_die])
        self.dice_count_var = ctk.IntVar(value=1)
        self.modifier_var = ctk.StringVar(value="0")
        self.formula_var = ctk.StringVar(value="")
        self.status_var = ctk.StringVar(value="Choose your dice and roll to begin your adventure!")

        self._build_layout()

        self._unsubscribers.extend(
            [
                self.service.on_orientation_tick(self._on_orientation),
                self.service.on_phase_change(self._on_phase),
                self.service.on_outcome(self._on_outcome),
            ]
        )
        self.service.set_scheduler(self)

        self.bind("<Return>", self._on_roll_key)
        self.bind("<space>", self._on_roll_key)
        self.protocol("WM_DELETE_WINDOW", self._on_close)
        self.after_idle(self._redraw)

    # -----------------
    # Layout & UI setup
    # -----------------
    def _build_layout(self) -> None:
        container = ctk.CTkFrame(self, fg_color=PANEL_BG)
        container.pack(fill="both", expand=True, padx=12, pady=12)

        controls = ctk.CTkFrame(container, corner_radius=14)
        controls.pack(side="left", fill="y", padx=(12, 8), pady=12)
        controls.pack_propagate(False)
        controls.configure(width=280)

        ctk.CTkLabel(controls, text="Choose Your Dice", font=("Segoe UI", 16, "bold")).pack(pady=(18, 10))
        self._die_selector = ctk.CTkSegmentedButton(
            controls,
            values=[kind.display_label for kind in self._kinds],
            variable=self.dice_selection_var,
            command=self._on_choice,
        )
        self._die_selector.pack(fill="x", padx=16)

        count_frame = ctk.CTkFrame(controls)
        count_frame.pack(fill="x", padx=16, pady=(24, 8))
        ctk.CTkLabel(count_frame, text="Number of dice", anchor="w").pack(fill="x", pady=(6, 2))
        slider = ctk.CTkSlider(count_frame, from_=1, to=10, number_of_steps=9, command=self._on_slider)
        slider.set(self.dice_count_var.get())
        slider.pack(fill="x")
        self.count_value_label = ctk.CTkLabel(count_frame, text="1", font=("Segoe UI", 14, "bold"))
        self.count_value_label.pack(pady=(6, 0))

        modifier_frame = ctk.CTkFrame(controls)
        modifier_frame.pack(fill="x", padx=16, pady=(8, 4))
        ctk.CTkLabel(modifier_frame, text="Modifier", anchor="w").pack(fill="x", pady=(6, 2))
        ctk.CTkEntry(modifier_frame, textvariable=self.modifier_var).pack(fill="x", padx=4, pady=(0, 6))

        formula_frame = ctk.CTkFrame(controls)
        formula_frame.pack(fill="x", padx=16, pady=(10, 4))
        ctk.CTkLabel(formula_frame, text="Dice Formula (optional)", anchor="w").pack(fill="x", pady=(6, 2))
        ctk.CTkEntry(formula_frame, textvariable=self.formula_var).pack(fill="x", padx=4, pady=(0, 6))
        ctk.CTkLabel(
            formula_frame,
            text="Examples: 2d20 + 1d6 + 3, d% ",
            font=("Segoe UI", 12),
            anchor="w",
            text_color="#b0bfd4",
        ).pack(fill="x", padx=4, pady=(0, 6))

        self.roll_button = ctk.CTkButton(controls, text="ROLL DICE", command=self.roll_dice)
        self.roll_button.pack(fill="x", padx=16, pady=(16, 4))
        ctk.CTkLabel(
            controls,
            text="Press Space or Enter to roll",
            font=("Segoe UI", 11),
            text_color="#8795a8",
        ).pack(pady=(0, 8))

        stage = ctk.CTkFrame(container, fg_color="#111c2a", corner_radius=14)
        stage.pack(side="left", fill="both", expand=True, padx=(8, 12), pady=12)

        self.dice_canvas = tk.Canvas(stage, bg=CANVAS_BG, highlightthickness=2, highlightbackground=ACCENT, height=320)
        self.dice_canvas.pack(fill="x", padx=16, pady=(16, 8))
        self.dice_canvas.bind("<Configure>", lambda _event: self._redraw())

        self.result_label = ctk.CTkLabel(stage, textvariable=self.status_var, font=("Segoe UI", 20, "bold"))
        self.result_label.pack(pady=(8, 4))

        ctk.CTkLabel(stage, text="Roll History", font=("Segoe UI", 16, "bold")).pack(pady=(12, 4))
        self.history_box = ctk.CTkTextbox(stage, height=180, activate_scrollbars=True)
        self.history_box.pack(fill="both", expand=True, padx=16, pady=(0, 16))
        self._render_history()

    # -----------------
    # Selection
    # -----------------
    def _on_choice(self, value: str) -> None:
        die_id = self._labels_to_ids.get(value)
        if die_id and self.service.select_die(die_id):
            self.status_var.set("Choose your dice and roll to begin your adventure!")
            self._redraw()

    def _on_slider(self, value: float) -> None:
        count = int(round(value))
        self.dice_count_var.set(count)
        self.count_value_label.configure(text=str(count))

    def _build_request(self) -> RollRequest:
        formula = self.formula_var.get().strip()
        if formula:
            return dice_engine.parse_formula(formula)
        die_id = self._labels_to_ids.get(self.dice_selection_var.get(), self.service.active_die)
        modifier_text = self.modifier_var.get().strip() or "0"
        return self.service.compose_request([(die_id, self.dice_count_var.get())], modifier_text)

    # -----------------
    # Rolling & history
    # -----------------
    def _on_roll_key(self, event: tk.Event) -> str | None:
        # Let typing in entries through; only a bare key press on the window rolls.
        if isinstance(event.widget, tk.Entry) and event.keysym == "space":
            return None
        self.roll_dice()
        return "break"

    def roll_dice(self) -> None:
        if self.service.phase.in_flight:
            return
        try:
            request = self._build_request()
        except DiceEngineError as exc:
            messagebox.showerror("Invalid Roll", str(exc), parent=self)
            return
        self.service.begin_roll(request)

    def _on_phase(self, phase: RollPhase) -> None:
        rolling = phase.in_flight
        self._sync_selector()
        self.roll_button.configure(
            state="disabled" if rolling else "normal",
            text="ROLLING..." if rolling else "ROLL DICE",
        )
        self._die_selector.configure(state="disabled" if rolling else "normal")
        if phase is RollPhase.SPINNING:
            self.status_var.set("Rolling the dice...")

    def _sync_selector(self) -> None:
        # Formula rolls switch the active die without touching the selector.
        label = self._ids_to_labels.get(self.service.active_die)
        if label and self.dice_selection_var.get() != label:
            self.dice_selection_var.set(label)

    def _on_outcome(self, outcome: RollOutcome) -> None:
        primary = outcome.primary_die or self.service.active_die
        face = outcome.primary_face
        face_text = catalog.format_face_value(primary, face) if face is not None else "-"
        if len(outcome.per_group) == 1 and len(outcome.per_group[0].results) == 1 and not outcome.modifier:
            self.status_var.set(f"{catalog.lookup(primary).label}: {face_text}")
        else:
            self.status_var.set(f"Total: {outcome.total}   ({outcome.breakdown()})")
        self._render_history()
        self._redraw()

    def _render_history(self) -> None:
        self.history_box.configure(state="normal")
        self.history_box.delete("1.0", "end")
        entries = self.service.get_history()
        if not entries:
            self.history_box.insert("end", "No rolls yet. Cast your first die to begin your adventure!")
        for entry in entries:
            self.history_box.insert("end", entry.summary() + "\n")
        self.history_box.configure(state="disabled")

    # -----------------
    # Drawing
    # -----------------
    def _on_orientation(self, _orientation: np.ndarray) -> None:
        self._redraw()

    def _redraw(self) -> None:
        canvas = self.dice_canvas
        canvas.delete("dice")
        width = max(canvas.winfo_width(), 1)
        height = max(canvas.winfo_height(), 1)
        size = min(width, height) * 0.36
        center = (width / 2, height / 2)

        die_id = self.service.active_die
        rgba = self._color_for_die(die_id)
        outline_hex = self._rgb_to_hex(np.clip(np.array(rgba[:3]) * 0.45, 0.0, 1.0))
        for face in project_model(model_for(die_id), self.service.orientation, center, size):
            fill = self._rgb_to_hex(np.clip(np.array(rgba[:3]) * face.shade, 0.0, 1.0))
            coords: List[float] = []
            for px, py in face.points:
                coords.extend((px, py))
            canvas.create_polygon(coords, fill=fill, outline=outline_hex, width=1.4, tags="dice")

        outcome = self.service.current_outcome
        if outcome is not None and outcome.primary_face is not None:
            canvas.create_text(
                center[0],
                center[1],
                text=catalog.format_face_value(die_id, outcome.primary_face),
                fill="#fdf6e3",
                font=("Segoe UI", int(size * 0.35), "bold"),
                tags="dice",
            )

    def _color_for_die(self, die_id: str) -> Tuple[float, float, float, float]:
        kinds = [kind.id for kind in self._kinds]
        position = kinds.index(die_id) if die_id in kinds else 0
        return self._colormap(0.15 + 0.7 * position / max(len(kinds) - 1, 1))

    def _rgb_to_hex(self, rgb) -> str:
        r = max(0, min(255, int(round(float(rgb[0]) * 255))))
        g = max(0, min(255, int(round(float(rgb[1]) * 255))))
        b = max(0, min(255, int(round(float(rgb[2]) * 255))))
        return f"#{r:02x}{g:02x}{b:02x}"

    def _on_close(self) -> None:
        self.service.reset()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        self.destroy()
