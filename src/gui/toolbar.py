"""
Toolbar

This module provides the viewer toolbar model: the Link views, collaboration
and Authorize buttons plus the room id label. It keeps the buttons' texts and
visibility consistent with the number of panes, the link state and the
collaboration state, and reports clicks through signals.

Inputs:
    - Pane count and link state
    - Collaboration state (on/off, room id, authorization needed)
    - Button clicks

Outputs:
    - link_clicked, collab_clicked, auth_clicked signals
    - Button texts and visibility

Requirements:
    - PySide6 for signals
"""

from typing import Dict, Optional

from PySide6.QtCore import QObject, Signal

from gui.pane_container import PaneContainer


class ToolbarButton:
    """State of one toolbar button."""

    def __init__(self, name: str, text: str, tooltip: str, visible: bool = True):
        self.name = name
        self.text = text
        self.tooltip = tooltip
        self.visible = visible

    def __repr__(self) -> str:
        return f"ToolbarButton({self.name!r}, {self.text!r}, visible={self.visible})"


class Toolbar(PaneContainer):
    """
    Viewer toolbar.

    Children are button names; they can be reordered by dragging.
    """

    # Signals
    link_clicked = Signal()
    collab_clicked = Signal()
    auth_clicked = Signal()
    state_changed = Signal()

    def __init__(self, container_id: str, width: float = 120, collaboration_enabled: bool = True,
                 parent: Optional[QObject] = None):
        """
        Initialize the toolbar.

        Args:
            container_id: Unique container id
            width: Toolbar width in pixels
            collaboration_enabled: False hides the collaboration buttons
            parent: Optional Qt parent
        """
        super().__init__("toolbar", container_id, width=width, parent=parent)
        self.collaboration_enabled = collaboration_enabled
        self.buttons: Dict[str, ToolbarButton] = {
            "link": ToolbarButton("link", "Link views", "Link views", visible=False),
            "collab": ToolbarButton("collab", "Start collab", "Start collaboration",
                                    visible=collaboration_enabled),
            "auth": ToolbarButton("auth", "Authorize", "Authorize", visible=False),
        }
        self.room_label = ""
        for name in self.buttons:
            self.add_child(name)

    def button(self, name: str) -> ToolbarButton:
        return self.buttons[name]

    def update_link_button(self, pane_count: int, linked: bool) -> None:
        """
        Update the Link views button.

        The button is shown only when at least two panes are active.

        Args:
            pane_count: Number of active panes
            linked: Current link state
        """
        button = self.buttons["link"]
        button.visible = pane_count >= 2
        if linked:
            button.text, button.tooltip = "Unlink views", "Unlink views"
        else:
            button.text, button.tooltip = "Link views", "Link views"
        self.state_changed.emit()

    def set_collaborating(self, on: bool, room_id: str = "") -> None:
        """
        Show the collaboration state.

        Args:
            on: True while connected to a room
            room_id: Room id shown in the label
        """
        collab = self.buttons["collab"]
        collab.visible = self.collaboration_enabled
        if on:
            collab.text, collab.tooltip = "End collab", "End collaboration"
            self.room_label = room_id
        else:
            collab.text, collab.tooltip = "Start collab", "Start collaboration"
            self.room_label = ""
        self.buttons["auth"].visible = False
        self.state_changed.emit()

    def show_authorize(self) -> None:
        """Replace the collaboration button by the Authorize button."""
        self.buttons["collab"].visible = False
        self.buttons["auth"].visible = True
        self.state_changed.emit()

    def click(self, name: str) -> None:
        """
        Click a button (ignored if hidden).

        Args:
            name: "link", "collab" or "auth"
        """
        button = self.buttons.get(name)
        if button is None or not button.visible:
            return
        if name == "link":
            self.link_clicked.emit()
        elif name == "collab":
            self.collab_clicked.emit()
        else:
            self.auth_clicked.emit()
