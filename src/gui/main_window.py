"""
Main Application Window

This module implements the main application window: menu bar, the viewer's
toolbar buttons, a thumbnails strip per batch, the render pane grid and a
trash drop area. Widgets translate mouse input into viewer operations and
drag gestures; all state lives in the Viewer. Strips and the trash carry a
grip that drags them along the component row.

Inputs:
    - User interactions (menu selections, toolbar clicks, drags, wheel)
    - Viewer and engine signals

Outputs:
    - Main application interface
    - Requests for file dialogs and collaboration actions (signals)

Requirements:
    - PySide6 for GUI components
    - Viewer and SlicePreviewEngine
    - ConfigManager for settings
"""

import base64
from typing import Dict, Optional

from PySide6.QtCore import QMimeData, QPoint, QRect, Qt, Signal
from PySide6.QtGui import QAction, QDrag, QIcon, QImage, QKeySequence, QPixmap
from PySide6.QtWidgets import (QHBoxLayout, QLabel, QListWidget, QListWidgetItem, QMainWindow,
                               QMenu, QSplitter, QToolBar, QVBoxLayout, QWidget)

from core.slice_preview_engine import PreviewPane, SlicePreviewEngine
from gui.pane_container import DragGesture
from gui.thumbnails_bar import ThumbnailsBar
from gui.viewer import Viewer
from utils.config_manager import ConfigManager

_DRAG_MIME = "application/x-medview-item"


def data_url_to_pixmap(data_url: Optional[str]) -> QPixmap:
    """Decode a 'data:image/png;base64,...' url (null pixmap if empty or invalid)."""
    pixmap = QPixmap()
    if data_url and "," in data_url:
        pixmap.loadFromData(base64.b64decode(data_url.split(",", 1)[1]))
    return pixmap


def pil_to_pixmap(image) -> QPixmap:
    """Convert a PIL Image to a QPixmap (deep copy owned by Qt)."""
    if image is None:
        return QPixmap()
    if image.mode != "L":
        image = image.convert("RGB")
    image_bytes = image.tobytes()
    if image.mode == "L":
        qimage = QImage(image_bytes, image.width, image.height, image.width, QImage.Format.Format_Grayscale8)
    else:
        qimage = QImage(image_bytes, image.width, image.height, image.width * 3, QImage.Format.Format_RGB888)
    return QPixmap.fromImage(qimage.copy())


class ThumbnailStrip(QListWidget):
    """List widget showing one thumbnails bar."""

    def __init__(self, window: "MainWindow", bar: ThumbnailsBar):
        super().__init__()
        self.main_window = window
        self.bar = bar
        self.items: Dict[int, QListWidgetItem] = {}
        self.setIconSize(QPixmap(bar.thumbnail_size, bar.thumbnail_size).size())
        self.setViewMode(QListWidget.ViewMode.IconMode)
        self.setFlow(QListWidget.Flow.TopToBottom)
        self.setFixedWidth(int(bar.width) + 20)
        self.setAcceptDrops(True)
        self.setDragEnabled(True)

        for record_id in bar.children:
            thumbnail = bar.get_thumbnail(record_id)
            item = QListWidgetItem(thumbnail.title)
            item.setData(Qt.ItemDataRole.UserRole, record_id)
            item.setToolTip(thumbnail.info)
            self.addItem(item)
            self.items[record_id] = item
            if thumbnail.loaded:
                self._on_thumbnail_loaded(record_id)
        self.refresh()

        bar.thumbnail_loaded.connect(self._on_thumbnail_loaded)
        bar.children_changed.connect(self.refresh)
        self.itemDoubleClicked.connect(
            lambda item: window.viewer.activate(item.data(Qt.ItemDataRole.UserRole)))

    def _on_thumbnail_loaded(self, record_id: int) -> None:
        item = self.items.get(record_id)
        thumbnail = self.bar.get_thumbnail(record_id)
        if item is None or thumbnail is None:
            return
        item.setText(thumbnail.title)
        pixmap = data_url_to_pixmap(thumbnail.image)
        if not pixmap.isNull():
            item.setIcon(QIcon(pixmap))

    def refresh(self) -> None:
        """Mirror the bar's children and their visibility."""
        for record_id in [rid for rid in self.items if rid not in self.bar.children]:
            self.takeItem(self.row(self.items.pop(record_id)))
        for record_id, item in self.items.items():
            item.setHidden(not self.bar.is_child_visible(record_id))

    def contextMenuEvent(self, event) -> None:
        item = self.itemAt(event.pos())
        if item is None:
            return
        record_id = item.data(Qt.ItemDataRole.UserRole)
        context_menu = QMenu(self)
        context_menu.addAction("Remove").triggered.connect(
            lambda: self.main_window.viewer.remove_record(record_id))
        context_menu.exec(event.globalPos())

    def startDrag(self, supported_actions) -> None:
        item = self.currentItem()
        if item is None:
            return
        record_id = item.data(Qt.ItemDataRole.UserRole)
        self.main_window.start_gesture(self.bar, record_id, item.icon().pixmap(48, 48))

    def dragEnterEvent(self, event) -> None:
        if event.mimeData().hasFormat(_DRAG_MIME):
            event.acceptProposedAction()

    def dragMoveEvent(self, event) -> None:
        if event.mimeData().hasFormat(_DRAG_MIME):
            event.acceptProposedAction()

    def dropEvent(self, event) -> None:
        item = self.itemAt(event.position().toPoint())
        index = self.row(item) if item is not None else None
        self.main_window.drop_gesture(self.bar, index)
        event.acceptProposedAction()


class ComponentHandle(QLabel):
    """Grip for dragging a top-level component along the component row."""

    def __init__(self, window: "MainWindow", component, text: str):
        super().__init__(text)
        self.main_window = window
        self.component = component
        self.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.setCursor(Qt.CursorShape.OpenHandCursor)
        self.setToolTip("Drag left or right to move")
        self.setStyleSheet("QLabel { background-color: #3a3a3a; color: #c8c8c8; padding: 2px; }")

    def mousePressEvent(self, event) -> None:
        if event.button() == Qt.MouseButton.LeftButton:
            self.main_window.begin_component_drag(self.component, event.globalPosition().x())
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event) -> None:
        if event.buttons() & Qt.MouseButton.LeftButton:
            self.main_window.move_component_drag(event.globalPosition().x())

    def mouseReleaseEvent(self, event) -> None:
        if event.button() == Qt.MouseButton.LeftButton:
            self.main_window.drop_component_drag(event.globalPosition().x())
        super().mouseReleaseEvent(event)


class PaneView(QLabel):
    """One render pane: shows the rendered slice and the info overlay."""

    def __init__(self, window: "MainWindow", pane_id: int, parent: QWidget):
        super().__init__(parent)
        self.main_window = window
        self.pane_id = pane_id
        self.press_pos: Optional[QPoint] = None
        self.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.setMinimumSize(64, 64)
        self.setStyleSheet("QLabel { background-color: black; color: #c8c8c8; border: 1px solid #444444; }")
        self.overlay = QLabel(self)
        self.overlay.setStyleSheet("QLabel { background: transparent; color: #ffd200; border: none; }")
        self.overlay.setAttribute(Qt.WidgetAttribute.WA_TransparentForMouseEvents)

    def set_selected(self, selected: bool) -> None:
        color = "#00aaff" if selected else "#444444"
        self.setStyleSheet(f"QLabel {{ background-color: black; color: #c8c8c8; border: 2px solid {color}; }}")

    def set_overlay(self, overlay: Dict[str, str]) -> None:
        self.overlay.setText("\n".join(text for text in (overlay.get("top_left", ""), overlay.get("bottom_left", ""),
                                                         overlay.get("bottom_right", "")) if text))
        self.overlay.adjustSize()
        self.overlay.move(4, 4)

    def wheelEvent(self, event) -> None:
        delta = event.angleDelta().y()
        if delta:
            self.main_window.scroll_pane(self.pane_id, 1 if delta > 0 else -1)
        event.accept()

    def mousePressEvent(self, event) -> None:
        if event.button() == Qt.MouseButton.LeftButton:
            self.press_pos = event.position().toPoint()
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event) -> None:
        if self.press_pos is None or not (event.buttons() & Qt.MouseButton.LeftButton):
            return
        pos = event.position().toPoint()
        travel = (pos - self.press_pos).manhattanLength()
        if travel >= self.main_window.viewer.renderers_box.drag_min_distance:
            self.press_pos = None
            self.main_window.start_gesture(self.main_window.viewer.renderers_box, self.pane_id, self.pixmap())

    def mouseReleaseEvent(self, event) -> None:
        if event.button() == Qt.MouseButton.LeftButton and self.press_pos is not None:
            self.press_pos = None
            pane = self.main_window.viewer.panes.get(self.pane_id)
            if pane is not None:
                self.main_window.viewer.select_pane(self.pane_id, not pane.selected)
        super().mouseReleaseEvent(event)

    def contextMenuEvent(self, event) -> None:
        viewer = self.main_window.viewer
        context_menu = QMenu(self)
        for orientation in ("X", "Y", "Z"):
            action = context_menu.addAction(f"Orientation {orientation}")
            action.triggered.connect(lambda checked=False, o=orientation: viewer.set_orientation(self.pane_id, o))
        context_menu.addSeparator()
        context_menu.addAction("Flip Columns").triggered.connect(
            lambda: viewer.renderers_box.toggle_flip(self.pane_id, columns=True))
        context_menu.addAction("Flip Rows").triggered.connect(
            lambda: viewer.renderers_box.toggle_flip(self.pane_id, columns=False))
        context_menu.addSeparator()
        context_menu.addAction("Close").triggered.connect(lambda: viewer.deactivate(self.pane_id))
        context_menu.exec(event.globalPos())


class PaneGrid(QWidget):
    """Render box area; lays out PaneViews by their grid rectangles."""

    def __init__(self, window: "MainWindow"):
        super().__init__()
        self.main_window = window
        self.views: Dict[int, PaneView] = {}
        self.setAcceptDrops(True)
        self.setStyleSheet("background-color: #1e1e1e;")

    def sync(self) -> None:
        """Create and remove PaneViews to match the active panes."""
        panes = self.main_window.viewer.panes
        for pane_id in list(self.views):
            if pane_id not in panes:
                self.views.pop(pane_id).deleteLater()
        for pane_id in panes:
            if pane_id not in self.views:
                view = PaneView(self.main_window, pane_id, self)
                view.show()
                self.views[pane_id] = view
        self.update_views()

    def update_views(self) -> None:
        panes = self.main_window.viewer.panes
        for pane_id, view in self.views.items():
            pane = panes.get(pane_id)
            if pane is None:
                continue
            left, top, width, height = pane.rect
            view.setGeometry(QRect(int(left * self.width()), int(top * self.height()),
                                   int(width * self.width()), int(height * self.height())))
            view.set_selected(pane.selected)
            view.set_overlay(pane.info_overlay)

    def resizeEvent(self, event) -> None:
        super().resizeEvent(event)
        self.update_views()

    def dragEnterEvent(self, event) -> None:
        if event.mimeData().hasFormat(_DRAG_MIME):
            event.acceptProposedAction()

    def dropEvent(self, event) -> None:
        self.main_window.drop_gesture(self.main_window.viewer.renderers_box)
        event.acceptProposedAction()


class TrashArea(QLabel):
    """Trash drop area."""

    def __init__(self, window: "MainWindow"):
        super().__init__("Trash")
        self.main_window = window
        self.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.setFixedWidth(int(window.viewer.trash.width))
        self.setAcceptDrops(True)
        self.setStyleSheet("QLabel { border: 1px dashed #888888; }")

    def dragEnterEvent(self, event) -> None:
        if event.mimeData().hasFormat(_DRAG_MIME):
            event.acceptProposedAction()

    def dropEvent(self, event) -> None:
        self.main_window.drop_gesture(self.main_window.viewer.trash.drop_region)
        event.acceptProposedAction()


class MainWindow(QMainWindow):
    """
    Main application window for the collaborative viewer.

    Provides:
    - Menu bar with file and collaboration actions
    - Toolbar mirroring the viewer's toolbar buttons
    - Thumbnail strips, render pane grid and trash
    - Status bar for user notices and chat messages
    """

    # Signals
    open_files_requested = Signal()
    open_folder_requested = Signal()
    add_files_requested = Signal()
    open_recent_file_requested = Signal(str)  # path
    join_collab_requested = Signal()
    chat_message_requested = Signal()

    def __init__(self, viewer: Viewer, engine: SlicePreviewEngine,
                 config_manager: Optional[ConfigManager] = None, title: str = "MedView Collab"):
        """
        Initialize the main window.

        Args:
            viewer: Viewer shown by the window
            engine: Engine rendering the viewer's panes
            config_manager: Optional ConfigManager instance
            title: Window title
        """
        super().__init__()
        self.viewer = viewer
        self.engine = engine
        self.config_manager = config_manager or viewer.config
        self.gesture: Optional[DragGesture] = None
        self.strips: Dict[int, ThumbnailStrip] = {}
        self.batch_columns: Dict[int, QWidget] = {}

        self.setWindowTitle(title)
        self.setGeometry(100, 100,
                         self.config_manager.get("window_width", 1200),
                         self.config_manager.get("window_height", 800))

        self._create_menu_bar()
        self._create_toolbar()
        self._create_central_widget()
        self.statusBar().showMessage("Ready")
        self._connect_viewer()
        self._arrange_components()

    def _create_menu_bar(self) -> None:
        """Create the application menu bar."""
        menubar = self.menuBar()

        file_menu = menubar.addMenu("&File")
        open_file_action = QAction("&Open File(s)...", self)
        open_file_action.setShortcut(QKeySequence.StandardKey.Open)
        open_file_action.triggered.connect(self.open_files_requested.emit)
        file_menu.addAction(open_file_action)

        open_folder_action = QAction("Open &Folder...", self)
        open_folder_action.setShortcut(QKeySequence("Ctrl+Shift+O"))
        open_folder_action.triggered.connect(self.open_folder_requested.emit)
        file_menu.addAction(open_folder_action)

        add_files_action = QAction("&Add File(s)...", self)
        add_files_action.triggered.connect(self.add_files_requested.emit)
        file_menu.addAction(add_files_action)

        file_menu.addSeparator()
        self.recent_menu = file_menu.addMenu("&Recent")
        self._update_recent_menu()

        file_menu.addSeparator()
        close_action = QAction("&Close", self)
        close_action.setShortcut(QKeySequence("Ctrl+W"))
        close_action.triggered.connect(lambda: self.viewer.init([]))
        file_menu.addAction(close_action)

        exit_action = QAction("E&xit", self)
        exit_action.setShortcut(QKeySequence.StandardKey.Quit)
        exit_action.triggered.connect(self.close)
        file_menu.addAction(exit_action)

        collab_menu = menubar.addMenu("&Collaboration")
        self.start_collab_action = QAction("&Start Collaboration", self)
        self.start_collab_action.triggered.connect(self.viewer.start_collaboration)
        collab_menu.addAction(self.start_collab_action)

        self.join_collab_action = QAction("&Join Room...", self)
        self.join_collab_action.triggered.connect(self.join_collab_requested.emit)
        collab_menu.addAction(self.join_collab_action)

        self.leave_collab_action = QAction("&Leave Room", self)
        self.leave_collab_action.triggered.connect(self.viewer.leave_collaboration)
        collab_menu.addAction(self.leave_collab_action)

        collab_menu.addSeparator()
        self.chat_action = QAction("Send &Chat Message...", self)
        self.chat_action.triggered.connect(self.chat_message_requested.emit)
        collab_menu.addAction(self.chat_action)

        enabled = self.viewer.channel is not None
        for action in (self.start_collab_action, self.join_collab_action):
            action.setEnabled(enabled)
        self.leave_collab_action.setEnabled(False)
        self.chat_action.setEnabled(False)

    def _update_recent_menu(self) -> None:
        self.recent_menu.clear()
        recent_files = self.config_manager.get_recent_files()
        if not recent_files:
            self.recent_menu.addAction("No recent files").setEnabled(False)
            return
        for path in recent_files:
            action = self.recent_menu.addAction(path)
            action.triggered.connect(lambda checked=False, p=path: self.open_recent_file_requested.emit(p))

    def update_recent_menu(self) -> None:
        self._update_recent_menu()

    def _create_toolbar(self) -> None:
        """Create one action per viewer toolbar button."""
        self.toolbar = QToolBar("Viewer", self)
        self.toolbar.setMovable(False)
        self.addToolBar(Qt.ToolBarArea.RightToolBarArea, self.toolbar)
        self.toolbar_actions: Dict[str, QAction] = {}
        for name in self.viewer.toolbar.children:
            action = QAction(self.viewer.toolbar.button(name).text, self)
            action.triggered.connect(lambda checked=False, n=name: self.viewer.toolbar.click(n))
            self.toolbar.addAction(action)
            self.toolbar_actions[name] = action
        self.room_label = QLabel("")
        self.toolbar.addWidget(self.room_label)
        self._refresh_toolbar()

    def _refresh_toolbar(self) -> None:
        for name, action in self.toolbar_actions.items():
            button = self.viewer.toolbar.button(name)
            action.setText(button.text)
            action.setToolTip(button.tooltip)
            action.setVisible(button.visible)
        room_id = self.viewer.toolbar.room_label
        self.room_label.setText(f"Room: {room_id}" if room_id else "")

    def _create_central_widget(self) -> None:
        central_widget = QWidget()
        self.row_layout = QHBoxLayout(central_widget)
        self.row_layout.setContentsMargins(2, 2, 2, 2)

        # Thumbnail strips sit before or after the pane grid, following the
        # viewer's component order
        self.splitter = QSplitter(Qt.Orientation.Horizontal)
        self.leading_panel = QWidget()
        self.leading_layout = QHBoxLayout(self.leading_panel)
        self.leading_layout.setContentsMargins(0, 0, 0, 0)
        self.splitter.addWidget(self.leading_panel)

        self.pane_grid = PaneGrid(self)
        self.splitter.addWidget(self.pane_grid)

        self.trailing_panel = QWidget()
        self.trailing_layout = QHBoxLayout(self.trailing_panel)
        self.trailing_layout.setContentsMargins(0, 0, 0, 0)
        self.splitter.addWidget(self.trailing_panel)
        self.splitter.setStretchFactor(1, 1)
        self.row_layout.addWidget(self.splitter, 1)

        self.trash_column = QWidget()
        trash_layout = QVBoxLayout(self.trash_column)
        trash_layout.setContentsMargins(0, 0, 0, 0)
        trash_layout.addWidget(ComponentHandle(self, self.viewer.trash, "Move"))
        self.trash_area = TrashArea(self)
        trash_layout.addWidget(self.trash_area, 1)
        self.row_layout.addWidget(self.trash_column)

        self.setCentralWidget(central_widget)

    def _connect_viewer(self) -> None:
        viewer = self.viewer
        viewer.batch_added.connect(self._on_batch_added)
        viewer.batch_removed.connect(self._on_batch_removed)
        viewer.panes_changed.connect(self.pane_grid.sync)
        viewer.renderers_box.pane_loaded.connect(lambda pane_id: self.pane_grid.update_views())
        viewer.renderers_box.pane_changed.connect(lambda pane_id: self.pane_grid.update_views())
        viewer.toolbar.state_changed.connect(self._refresh_toolbar)
        viewer.user_notice.connect(lambda message: self.statusBar().showMessage(message, 5000))
        viewer.chat_message_received.connect(
            lambda msg: self.statusBar().showMessage(f"{msg.get('user', '')}: {msg.get('msg', '')}", 10000))
        viewer.collaboration_changed.connect(self._on_collaboration_changed)
        viewer.component_row.children_changed.connect(self._arrange_components)
        self.engine.pane_rendered.connect(self._on_pane_rendered)

    def _on_batch_added(self, batch_id: int) -> None:
        bar = self.viewer.thumbnails_bars.get(batch_id)
        if bar is None:
            return
        column = QWidget()
        column_layout = QVBoxLayout(column)
        column_layout.setContentsMargins(0, 0, 0, 0)
        column_layout.addWidget(ComponentHandle(self, bar, f"Batch {batch_id + 1}"))
        strip = ThumbnailStrip(self, bar)
        column_layout.addWidget(strip, 1)
        self.strips[batch_id] = strip
        self.batch_columns[batch_id] = column
        self._arrange_components()

    def _on_batch_removed(self, batch_id: int) -> None:
        self.strips.pop(batch_id, None)
        column = self.batch_columns.pop(batch_id, None)
        if column is not None:
            column.setParent(None)
            column.deleteLater()

    def _arrange_components(self) -> None:
        """Place strips, toolbar and trash before or after the pane grid as ordered in the viewer."""
        components = self.viewer.components
        box_index = components.index(self.viewer.renderers_box)

        for column in self.batch_columns.values():
            self.leading_layout.removeWidget(column)
            self.trailing_layout.removeWidget(column)

        leading_index = trailing_index = 0
        for index, component in enumerate(components):
            leading = index < box_index
            if component is self.viewer.toolbar:
                area = Qt.ToolBarArea.LeftToolBarArea if leading else Qt.ToolBarArea.RightToolBarArea
                if self.toolBarArea(self.toolbar) != area:
                    self.addToolBar(area, self.toolbar)
            elif component is self.viewer.trash:
                self.row_layout.removeWidget(self.trash_column)
                self.row_layout.insertWidget(0 if leading else self.row_layout.count(), self.trash_column)
            elif getattr(component, "batch_id", None) in self.batch_columns:
                column = self.batch_columns[component.batch_id]
                if leading:
                    self.leading_layout.insertWidget(leading_index, column)
                    leading_index += 1
                else:
                    self.trailing_layout.insertWidget(trailing_index, column)
                    trailing_index += 1
        self.trailing_panel.setVisible(self.trailing_layout.count() > 0)

    def begin_component_drag(self, component, x: float) -> bool:
        """Press on a component's grip; returns False if no gesture started."""
        self.gesture = self.viewer.begin_drag(self.viewer.component_row, component.container_id, (x, 0.0))
        return self.gesture is not None

    def move_component_drag(self, x: float) -> None:
        if self.gesture is not None and self.gesture.source is self.viewer.component_row:
            self.gesture.move((x, 0.0))

    def drop_component_drag(self, x: float) -> None:
        """Release a component's grip; a drag past the minimum distance reorders the row."""
        gesture = self.gesture
        if gesture is None or gesture.source is not self.viewer.component_row:
            return
        gesture.move((x, 0.0))
        gesture.drop(self.viewer.component_row)
        self.gesture = None

    def _on_collaboration_changed(self, on: bool) -> None:
        self.start_collab_action.setEnabled(not on)
        self.join_collab_action.setEnabled(not on)
        self.leave_collab_action.setEnabled(on)
        self.chat_action.setEnabled(on)
        self.statusBar().showMessage("Collaboration started" if on else "Collaboration ended", 5000)

    def _on_pane_rendered(self, handle: PreviewPane, image) -> None:
        for pane_id, pane in self.viewer.panes.items():
            if pane.handle is handle:
                view = self.pane_grid.views.get(pane_id)
                if view is None:
                    self.pane_grid.sync()
                    view = self.pane_grid.views.get(pane_id)
                if view is None:
                    return
                pixmap = pil_to_pixmap(image)
                if pixmap.isNull():
                    view.setText(f"Record {pane_id}")
                else:
                    view.setPixmap(pixmap.scaled(view.size(), Qt.AspectRatioMode.KeepAspectRatio,
                                                 Qt.TransformationMode.SmoothTransformation))
                self.pane_grid.update_views()
                return

    def scroll_pane(self, pane_id: int, delta: int) -> None:
        pane = self.viewer.panes.get(pane_id)
        if pane is not None:
            self.engine.scroll(pane.handle, delta)
            # The preview engine does not track slices itself
            self.engine.update_pane(pane.handle, pane)

    # ------------------------------------------------------------------
    # Drag gestures
    # ------------------------------------------------------------------

    def start_gesture(self, source, item_id: int, pixmap: Optional[QPixmap] = None) -> None:
        """
        Run a Qt drag for an item and translate it into a viewer gesture.

        The Qt drag is modal; the drop widgets resolve the gesture and any
        gesture left unresolved is cancelled afterwards.
        """
        self.gesture = self.viewer.begin_drag(source, item_id, (0.0, 0.0))
        if self.gesture is None:
            return
        self.gesture.move((float(source.drag_min_distance), 0.0))

        drag = QDrag(self)
        mime_data = QMimeData()
        mime_data.setData(_DRAG_MIME, str(item_id).encode())
        drag.setMimeData(mime_data)
        if pixmap is not None and not pixmap.isNull():
            drag.setPixmap(pixmap.scaled(64, 64, Qt.AspectRatioMode.KeepAspectRatio,
                                         Qt.TransformationMode.SmoothTransformation))
            drag.setHotSpot(QPoint(32, 32))
        drag.exec(Qt.DropAction.MoveAction)

        if self.gesture is not None and not self.gesture.finished:
            self.gesture.cancel()
        self.gesture = None
        for strip in self.strips.values():
            strip.refresh()
        self.pane_grid.sync()

    def drop_gesture(self, target, index: Optional[int] = None) -> None:
        if self.gesture is not None and not self.gesture.finished:
            self.gesture.drop(target, index)

    def closeEvent(self, event) -> None:
        self.config_manager.set("window_width", self.width())
        self.config_manager.set("window_height", self.height())
        self.config_manager.save_config()
        self.viewer.leave_collaboration()
        super().closeEvent(event)
