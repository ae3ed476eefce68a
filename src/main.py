"""
MedView Collab - Main Application Entry Point

This module is the main entry point for the collaborative viewer application.
It initializes the application, creates one viewer window per local
collaborator, and sets up the application event loop.

With --peers N (N >= 2) the windows share an in-process collaboration hub and
cloud storage, so a room started in one window can be joined from another.

Inputs:
    - Command line arguments: files/folders to open, --peers, --name

Outputs:
    - Running viewer application

Requirements:
    - PySide6 for application framework
    - pydicom for DICOM file handling
    - PIL/Pillow for image processing
    - numpy for array operations
    - All other application modules
"""

import argparse
import getpass
import sys
import traceback
from pathlib import Path
from typing import List, Optional

# Add src directory to path
src_dir = Path(__file__).parent
sys.path.insert(0, str(src_dir))

from PySide6.QtCore import QObject
from PySide6.QtWidgets import QApplication, QFileDialog, QInputDialog, QMessageBox, QStyleFactory

from core.collaboration import InMemoryCloudStorage, LocalCollaborationHub
from core.slice_preview_engine import SlicePreviewEngine
from gui.main_window import MainWindow
from gui.viewer import Viewer
from utils.config_manager import ConfigManager
from utils.file_utils import local_file_descriptors


class ViewerSession(QObject):
    """
    One viewer window and the objects behind it.

    Handles the window's file dialog and collaboration requests.
    """

    def __init__(self, config_manager: ConfigManager, hub: Optional[LocalCollaborationHub],
                 collaborator_info: dict, index: int):
        super().__init__()
        self.config_manager = config_manager
        self.engine = SlicePreviewEngine(config_manager.get_thumbnail_size())
        channel = None
        if hub is not None:
            channel = hub.create_channel(collaborator_info,
                                         data_files_base_dir=config_manager.get_collab_data_dir())
        self.viewer = Viewer(f"viewer{index}", self.engine, channel, config_manager)
        self.main_window = MainWindow(self.viewer, self.engine, config_manager,
                                      title=f"MedView Collab - {collaborator_info['name']}")

        self.main_window.open_files_requested.connect(lambda: self.open_files(replace=True))
        self.main_window.add_files_requested.connect(lambda: self.open_files(replace=False))
        self.main_window.open_folder_requested.connect(self.open_folder)
        self.main_window.open_recent_file_requested.connect(lambda path: self.load_paths([path]))
        self.main_window.join_collab_requested.connect(self.join_room)
        self.main_window.chat_message_requested.connect(self.send_chat_message)

    def open_files(self, replace: bool) -> None:
        files, _ = QFileDialog.getOpenFileNames(self.main_window, "Open Data File(s)",
                                                self.config_manager.get_last_path(), "All Files (*.*)")
        if files:
            self.config_manager.set_last_path(files[0])
            self.load_paths(files, replace)

    def open_folder(self) -> None:
        folder = QFileDialog.getExistingDirectory(self.main_window, "Open Data Folder",
                                                  self.config_manager.get_last_path())
        if folder:
            self.config_manager.set_last_path(folder)
            self.load_paths([folder])

    def load_paths(self, paths: List[str], replace: bool = True) -> None:
        """
        Open files and folders in the viewer.

        Args:
            paths: File and folder paths
            replace: True to replace the current data, False to add a batch
        """
        descriptors = local_file_descriptors(paths)
        if not descriptors:
            QMessageBox.warning(self.main_window, "No Files", "No files were found at the selected location.")
            return
        for path in paths:
            self.config_manager.add_recent_file(path)
        self.main_window.update_recent_menu()
        if replace:
            self.viewer.init(descriptors)
        elif self.viewer.add_data(descriptors) is not None:
            self.viewer.render_scene()

    def join_room(self) -> None:
        channel = self.viewer.channel
        rooms = channel.hub.room_ids() if channel is not None else []
        if not rooms:
            QMessageBox.information(self.main_window, "Join Room", "No collaboration room is open.")
            return
        room_id, ok = QInputDialog.getItem(self.main_window, "Join Room", "Room:", rooms, 0, False)
        if ok and room_id:
            self.viewer.join_collaboration(room_id)

    def send_chat_message(self) -> None:
        text, ok = QInputDialog.getText(self.main_window, "Chat", "Message:")
        if ok and text:
            self.viewer.send_chat_message(text)


class MedViewCollabApp(QObject):
    """
    Main application class.

    Creates the Qt application and one ViewerSession per collaborator.
    """

    def __init__(self, paths: List[str], peers: int = 1, name: Optional[str] = None):
        super().__init__()

        self.app = QApplication.instance() or QApplication(sys.argv)
        self.app.setApplicationName("MedView Collab")
        self.app.setStyle(QStyleFactory.create("Fusion"))

        self.config_manager = ConfigManager()
        hub = LocalCollaborationHub(InMemoryCloudStorage()) if peers > 1 else None

        base_name = name or getpass.getuser()
        self.sessions: List[ViewerSession] = []
        for index in range(max(1, peers)):
            info = {
                "id": str(index),
                "name": base_name if index == 0 else f"{base_name} ({index + 1})",
                "mail": f"{base_name}+{index}@localhost",
            }
            self.sessions.append(ViewerSession(self.config_manager, hub, info, index))

        if paths:
            self.sessions[0].load_paths(paths)

    def run(self) -> int:
        """
        Run the application.

        Returns:
            Exit code
        """
        for offset, session in enumerate(self.sessions):
            session.main_window.move(100 + 40 * offset, 100 + 40 * offset)
            session.main_window.show()
        exit_code = self.app.exec()
        self.config_manager.save_config()
        return exit_code


def exception_hook(exctype, value, tb):
    """Global exception handler to catch unhandled exceptions."""
    error_msg = ''.join(traceback.format_exception(exctype, value, tb))
    print(f"Unhandled exception:\n{error_msg}")

    if QApplication.instance():
        QMessageBox.critical(
            None,
            "Fatal Error",
            f"An unexpected error occurred:\n\n{exctype.__name__}: {value}\n\nThe application may be unstable."
        )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Collaborative multi-pane medical image viewer",
    )
    parser.add_argument("paths", nargs="*", help="Data files or folders to open")
    parser.add_argument("--peers", type=int, default=1,
                        help="Number of collaborator windows sharing one local room server (default: 1)")
    parser.add_argument("--name", default=None, help="Collaborator name (default: login name)")
    return parser.parse_args(argv)


def main():
    """Main entry point."""
    sys.excepthook = exception_hook
    args = parse_args()

    try:
        app = MedViewCollabApp(args.paths, args.peers, args.name)
        return app.run()
    except Exception as e:
        print(f"Fatal error: {e}")
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
