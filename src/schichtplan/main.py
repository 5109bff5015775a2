"""
Main Entry Point for Schichtplan

Wires storage, data manager, assignment engine and request workflow into the
main window, with logging and a global exception handler.
"""

import sys
import logging
from pathlib import Path
from datetime import datetime
from tkinter import TclError, messagebox
from typing import Optional

from schichtplan.data_manager import DataManager
from schichtplan.scheduler_logic import AssignmentEngine
from schichtplan.storage import JsonFileStore
from schichtplan.vacation import VacationWorkflow

logger = logging.getLogger(__name__)


def setup_logging(log_dir: Path = Path("logs")):
    """Daily log file plus stdout"""
    log_dir.mkdir(exist_ok=True)
    log_file = log_dir / f"schichtplan_{datetime.now():%Y%m%d}.log"

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file, encoding="utf-8"),
            logging.StreamHandler(sys.stdout)
        ]
    )


def resolve_data_dir() -> Path:
    """Data directory next to the frozen executable or the source tree"""
    if getattr(sys, 'frozen', False):
        base_path = Path(sys.executable).parent
    else:
        base_path = Path(__file__).parent.parent
    data_dir = base_path / "data"
    data_dir.mkdir(exist_ok=True)
    return data_dir


def show_error(title: str, message: str):
    try:
        messagebox.showerror(title, message)
    except TclError:
        # No display available
        logger.debug(f"Could not show error dialog: {title}")


def handle_exception(exc_type, exc_value, exc_traceback):
    """Global exception handler"""
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return

    logger.error("Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback))
    show_error("Anwendungsfehler", f"Ein unerwarteter Fehler ist aufgetreten:\n\n{exc_type.__name__}: {exc_value}")


class SchichtplanApp:
    """Main application class"""

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = data_dir
        self.data_manager = None
        self.engine = None
        self.workflow = None

    def initialize(self):
        if self.data_dir is None:
            self.data_dir = resolve_data_dir()
        logger.info(f"Persistent data directory: {self.data_dir}")

        self.data_manager = DataManager(JsonFileStore(self.data_dir))
        logger.info(f"Loaded {len(self.data_manager.employees.get_employees())} employees "
                    f"and {len(self.data_manager.schedule.days())} schedule days")

        self.engine = AssignmentEngine(self.data_manager.schedule, self.data_manager.employees)
        self.workflow = VacationWorkflow(self.data_manager)

    def run(self) -> bool:
        try:
            self.initialize()

            # Imported late so logging is configured before the toolkit loads
            from schichtplan.ui import MainWindow

            MainWindow(data_manager=self.data_manager, engine=self.engine, workflow=self.workflow).mainloop()
            logger.info("Application closed normally")
            return True

        except Exception as e:
            logger.error(f"Application error: {e}", exc_info=True)
            show_error("Schichtplan", f"Schichtplan wurde wegen eines Fehlers beendet:\n\n"
                                      f"{type(e).__name__}: {e}\n\nDetails stehen in den Log-Dateien.")
            return False

        finally:
            self.cleanup()

    def cleanup(self):
        """Write all state once more before exit"""
        if self.data_manager is None:
            return
        if self.data_manager.save_data():
            logger.info("Data saved successfully")
        else:
            logger.error("Some data could not be saved during cleanup")


def main():
    """Main entry point"""
    sys.excepthook = handle_exception
    setup_logging()
    logger.info("Starting Schichtplan")

    sys.exit(0 if SchichtplanApp().run() else 1)


if __name__ == "__main__":
    main()
