from __future__ import annotations

from pathlib import Path
from typing import Hashable, Optional

import yaml
from PyQt6.QtCore import Qt
from PyQt6.QtGui import QStandardItem, QStandardItemModel
from PyQt6.QtWidgets import (
    QFileDialog,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QTreeView,
    QVBoxLayout,
    QWidget,
)

from checktree.core.checktree import CheckboxCapability, CheckTree
from checktree.core.config import TreeConfig, load_config
from checktree.core.models import StateChange
from checktree.core.source import load_records
from checktree.core.tree import NotFoundError, ValidationError


ROLE_NODE_ID = Qt.ItemDataRole.UserRole

LABEL_FIELDS = ("text", "name", "title")


def _label(record, node_id: Hashable) -> str:
    for field in LABEL_FIELDS:
        value = record.get(field)
        if value:
            return str(value)
    return str(node_id)


class MainWindow(QMainWindow):
    def __init__(self, config: Optional[TreeConfig] = None) -> None:
        super().__init__()
        from checktree import __version__

        self.setWindowTitle(f"Check Tree {__version__}")

        self.config = config or load_config(Path("config.yaml"))
        self.checks: Optional[CheckTree] = None
        self.capability: Optional[CheckboxCapability] = None
        self._items: dict[Hashable, QStandardItem] = {}
        self._unsubscribe = None

        self.model = QStandardItemModel()
        self.model.setHorizontalHeaderLabels(["Nodes"])
        self.tree_view = QTreeView()
        self.tree_view.setModel(self.model)

        self.source_label = QLabel("No tree loaded")
        self.status_label = QLabel("")

        self.open_button = QPushButton("Open Tree")
        self.check_all_button = QPushButton("Check All")
        self.uncheck_all_button = QPushButton("Uncheck All")
        self.show_checked_button = QPushButton("Show Checked")

        self.open_button.clicked.connect(self.open_tree)
        self.check_all_button.clicked.connect(self.check_all)
        self.uncheck_all_button.clicked.connect(self.uncheck_all)
        self.show_checked_button.clicked.connect(self.show_checked)
        self._set_buttons_enabled(False)

        layout = QVBoxLayout()
        layout.addWidget(self.source_label)

        button_row = QHBoxLayout()
        button_row.addWidget(self.open_button)
        button_row.addWidget(self.check_all_button)
        button_row.addWidget(self.uncheck_all_button)
        button_row.addWidget(self.show_checked_button)
        button_row.addStretch()
        layout.addLayout(button_row)

        layout.addWidget(self.tree_view)
        layout.addWidget(self.status_label)

        container = QWidget()
        container.setLayout(layout)
        self.setCentralWidget(container)

        self.model.itemChanged.connect(self.on_item_changed)

    def _set_buttons_enabled(self, enabled: bool) -> None:
        self.check_all_button.setEnabled(enabled)
        self.uncheck_all_button.setEnabled(enabled)
        self.show_checked_button.setEnabled(enabled)

    def open_tree(self) -> None:
        path, _ = QFileDialog.getOpenFileName(
            self, "Open Tree", "", "Tree files (*.yaml *.yml *.json)"
        )
        if not path:
            return
        self.load_tree(Path(path))

    def load_tree(self, path: Path) -> None:
        try:
            checks = CheckTree.from_records(load_records(path), self.config)
        except (OSError, UnicodeDecodeError, yaml.YAMLError, ValidationError) as exc:
            QMessageBox.critical(self, "Could not load tree", str(exc))
            return

        if self._unsubscribe:
            self._unsubscribe()
        self.checks = checks
        self.capability = checks if self.config.checkboxes else None
        if self.capability is not None:
            self._unsubscribe = self.capability.on_state_changed(self.on_state_changed)

        self.source_label.setText(f"Tree: {path}")
        self.populate(checks)
        self._set_buttons_enabled(self.capability is not None)
        self.status_label.setText(
            f"{len(checks.tree)} nodes, {len(checks.last_reconciliation)} reconciled on load"
        )

    def populate(self, checks: CheckTree) -> None:
        self.model.blockSignals(True)
        self.model.clear()
        self.model.setHorizontalHeaderLabels(["Nodes"])
        self._items = {}

        # Parents are always created before their children in pre-order.
        for node_id in checks.tree.iter_preorder():
            node = checks.tree.node(node_id)
            item = QStandardItem(_label(node.record, node_id))
            item.setEditable(False)
            item.setData(node_id, ROLE_NODE_ID)
            if self.capability is not None:
                item.setCheckable(True)
                item.setAutoTristate(False)
                item.setCheckState(Qt.CheckState(checks.state_of(node_id)))
            if node.parent_id is None:
                self.model.appendRow(item)
            else:
                self._items[node.parent_id].appendRow(item)
            self._items[node_id] = item

        self.model.blockSignals(False)
        self.tree_view.expandAll()

    def on_item_changed(self, item: QStandardItem) -> None:
        if not item or self.capability is None:
            return
        node_id = item.data(ROLE_NODE_ID)
        try:
            if item.checkState() == Qt.CheckState.Checked:
                self.capability.check(node_id)
            else:
                self.capability.uncheck(node_id)
        except NotFoundError as exc:
            QMessageBox.warning(self, "Unknown node", str(exc))

    def on_state_changed(self, change: StateChange) -> None:
        item = self._items.get(change.node_id)
        if item is None:
            return
        self.model.blockSignals(True)
        item.setCheckState(Qt.CheckState(change.state))
        self.model.blockSignals(False)
        self.tree_view.viewport().update()

    def check_all(self) -> None:
        if self.capability is not None:
            self.capability.check_all()

    def uncheck_all(self) -> None:
        if self.capability is not None:
            self.capability.uncheck_all()

    def show_checked(self) -> None:
        if self.capability is None:
            return
        checked = [str(node_id) for node_id in self.capability.get_checked_ids()]
        QMessageBox.information(
            self,
            "Checked nodes",
            ", ".join(checked) if checked else "No nodes checked.",
        )
