"""Entry point for the PDV & kitchen Textual app."""

from __future__ import annotations

from pdv.logging_setup import setup_file_logging
from pdv.terminal_app import PdvApp


def main() -> None:
    """Run the Textual application."""
    setup_file_logging()
    PdvApp().run()


if __name__ == "__main__":
    main()
