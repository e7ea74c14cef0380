import sys

from PySide6.QtWidgets import QApplication

from cropcore.logger import setup_logger
from cropui.main_window import MainWindow


def main() -> int:
    setup_logger()
    setup_logger(name="cropui")
    app = QApplication(sys.argv)
    app.setApplicationName("OpenCrop")
    app.setOrganizationName("OpenCrop")

    w = MainWindow()
    w.show()
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
