"""
Trash

The trash is a top-level viewer component with a nested drop region.
Dropping a thumbnail or a render pane on the region removes the whole batch
the item belongs to; the region itself never keeps children.

Requirements:
    - gui.pane_container for the container base class
"""

from typing import Optional

from PySide6.QtCore import QObject

from gui.pane_container import PaneContainer


class Trash(PaneContainer):
    """Trash component; drops land on its nested drop_region."""

    def __init__(self, container_id: str, width: float = 60, parent: Optional[QObject] = None):
        super().__init__("trash", container_id, width=width, parent=parent)
        self.drop_region = PaneContainer("trash", container_id + "_region", parent=self)
