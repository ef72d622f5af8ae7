import sys
from pathlib import Path

from PyQt6.QtWidgets import QApplication

from checktree import __version__
from checktree.ui.main_window import MainWindow


def main() -> None:
    app = QApplication(sys.argv)
    app.setApplicationName(f"Check Tree {__version__}")
    window = MainWindow()
    window.resize(700, 600)
    window.show()
    tree_args = [arg for arg in sys.argv[1:] if not arg.startswith("--")]
    if tree_args:
        window.load_tree(Path(tree_args[0]))
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
