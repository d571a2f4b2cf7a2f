import customtkinter as ctk

from dice_roller.dice import get_roll_service
from dice_roller.dice.dice_roller_window import DiceRollerWindow
from dice_roller.helpers.config_helper import ConfigHelper
from dice_roller.helpers.logging_helper import initialize_logging, log_info, log_module_import

log_module_import(__name__)


class MainWindow(ctk.CTk):
    def __init__(self):
        super().__init__()
        self.title("D&D Dice Roller")
        self.withdraw()
        self.service = get_roll_service(scheduler=self)
        self.roller = DiceRollerWindow(self, service=self.service)
        self.roller.protocol("WM_DELETE_WINDOW", self._on_close)

    def _on_close(self) -> None:
        self.roller._on_close()
        self.destroy()


def main() -> None:
    ConfigHelper.load_config()
    initialize_logging()
    ctk.set_appearance_mode(ConfigHelper.get("Appearance", "mode", fallback="dark") or "dark")
    log_info("Starting dice roller")
    app = MainWindow()
    app.mainloop()


if __name__ == "__main__":
    main()
