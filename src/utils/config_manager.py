"""
Configuration Manager

This module handles persistent storage and retrieval of user preferences and
viewer settings. Settings are stored in a JSON file in the user's application
data directory.

Inputs:
    - User preferences (last opened path, recent files, window geometry)
    - Viewer tuning values (renderer capacity, drag distance, layout gutter,
      zip chunk size, collaboration data directory)

Outputs:
    - Loaded configuration values
    - Saved configuration file

Requirements:
    - json module (standard library)
    - pathlib module (standard library)
    - os module (standard library)
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, List


ORIENTATIONS = ["X", "Y", "Z"]


class ConfigManager:
    """
    Manages application configuration and user preferences.

    Handles loading and saving of settings including:
    - Last opened file/folder path and recent files
    - Window geometry
    - Renderers box capacity and default pane orientation
    - Drag-and-drop and layout metrics
    - Collaboration upload settings
    """

    def __init__(self, config_filename: str = "medview_collab_config.json",
                 config_dir: Optional[Path] = None):
        """
        Initialize the configuration manager.

        Args:
            config_filename: Name of the configuration file to use
            config_dir: Optional directory override (defaults to the user's app data directory)
        """
        if config_dir is not None:
            self.config_dir = Path(config_dir)
        elif os.name == 'nt':  # Windows
            app_data = os.getenv('APPDATA', os.path.expanduser('~'))
            self.config_dir = Path(app_data) / "MedViewCollab"
        else:  # Mac/Linux
            self.config_dir = Path.home() / ".config" / "MedViewCollab"

        # Create config directory if it doesn't exist
        self.config_dir.mkdir(parents=True, exist_ok=True)

        # Full path to config file
        self.config_path = self.config_dir / config_filename

        # Default configuration values
        self.default_config = {
            "last_path": "",
            "recent_files": [],  # List of recently opened file/folder paths (max 20)
            "window_width": 1200,
            "window_height": 800,
            "viewer_width": 1200,  # Logical width of the viewer's component row
            "max_renderers": 4,  # Maximum number of concurrent panes in the renderers box
            "default_orientation": "Z",  # Orientation of newly activated panes
            "drag_min_distance": 60,  # Pointer travel (px) before a render pane drag registers
            "layout_gutter": 5,  # Gap (px) between neighbouring containers
            "thumbnails_bar_width": 120,
            "thumbnail_size": 96,  # Max edge (px) of normalized thumbnail images
            "zip_chunk_max_bytes": 20971520,  # 20 MB per uploaded zip file
            "collab_data_dir": "medview_collab_data",  # Cloud directory for shared data files
        }

        # Load configuration
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """
        Load configuration from file, or return defaults if file doesn't exist.

        Returns:
            Dictionary containing configuration values
        """
        if self.config_path.exists():
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    loaded_config = json.load(f)
                    # Merge with defaults to ensure all keys exist
                    config = self.default_config.copy()
                    config.update(loaded_config)
                    return config
            except (json.JSONDecodeError, IOError) as e:
                # If file is corrupted, use defaults
                print(f"Warning: Could not load config file: {e}")
                return self.default_config.copy()
        else:
            return self.default_config.copy()

    def save_config(self) -> bool:
        """
        Save current configuration to file.

        Returns:
            True if save was successful, False otherwise
        """
        try:
            with open(self.config_path, 'w', encoding='utf-8') as f:
                json.dump(self.config, f, indent=4, ensure_ascii=False)
            return True
        except IOError as e:
            print(f"Error saving config file: {e}")
            return False

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            key: Configuration key to retrieve
            default: Default value if key doesn't exist

        Returns:
            Configuration value or default
        """
        return self.config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """
        Set a configuration value.

        Args:
            key: Configuration key to set
            value: Value to set
        """
        self.config[key] = value

    def get_last_path(self) -> str:
        """
        Get the last opened file or folder path.

        Returns:
            Path string, empty if not set
        """
        return self.config.get("last_path", "")

    def set_last_path(self, path: str) -> None:
        """
        Set the last opened file or folder path.

        Args:
            path: Path to save
        """
        self.config["last_path"] = path
        self.save_config()

    def get_recent_files(self) -> List[str]:
        """
        Get list of recently opened files and folders.

        Returns:
            List of file/folder paths (most recent first)
        """
        return self.config.get("recent_files", [])

    def add_recent_file(self, file_path: str) -> None:
        """
        Add a file or folder to recent files list.

        Removes duplicates and keeps only the most recent 20 items.

        Args:
            file_path: Path to file or folder
        """
        recent_files = self.config.get("recent_files", [])

        # Remove if already exists (to move to top)
        if file_path in recent_files:
            recent_files.remove(file_path)

        recent_files.insert(0, file_path)
        recent_files = recent_files[:20]

        self.config["recent_files"] = recent_files
        self.save_config()

    def get_max_renderers(self) -> int:
        """
        Get the renderers box capacity.

        Returns:
            Maximum number of concurrent render panes
        """
        return int(self.config.get("max_renderers", 4))

    def set_max_renderers(self, count: int) -> None:
        """
        Set the renderers box capacity.

        Args:
            count: Number of panes (1-4; the grid layout has four cells)
        """
        if 1 <= count <= 4:
            self.config["max_renderers"] = count
            self.save_config()

    def get_default_orientation(self) -> str:
        """
        Get the orientation given to newly activated panes.

        Returns:
            "X", "Y" or "Z"
        """
        orientation = self.config.get("default_orientation", "Z")
        return orientation if orientation in ORIENTATIONS else "Z"

    def set_default_orientation(self, orientation: str) -> None:
        """
        Set the orientation given to newly activated panes.

        Args:
            orientation: "X", "Y" or "Z"
        """
        if orientation in ORIENTATIONS:
            self.config["default_orientation"] = orientation
            self.save_config()

    def get_drag_min_distance(self) -> int:
        """Pointer travel in pixels before a render pane drag registers."""
        return int(self.config.get("drag_min_distance", 60))

    def set_drag_min_distance(self, distance: int) -> None:
        """Set the render pane drag threshold in pixels (non-negative)."""
        if distance >= 0:
            self.config["drag_min_distance"] = distance
            self.save_config()

    def get_layout_gutter(self) -> int:
        """Gap in pixels between neighbouring containers."""
        return int(self.config.get("layout_gutter", 5))

    def get_viewer_width(self) -> int:
        """Logical width in pixels of the viewer's component row."""
        return int(self.config.get("viewer_width", 1200))

    def get_thumbnails_bar_width(self) -> int:
        """Width in pixels of a thumbnails bar."""
        return int(self.config.get("thumbnails_bar_width", 120))

    def get_thumbnail_size(self) -> int:
        """Max edge in pixels of normalized thumbnail images."""
        return int(self.config.get("thumbnail_size", 96))

    def get_zip_chunk_max_bytes(self) -> int:
        """Maximum payload size of one uploaded zip file."""
        return int(self.config.get("zip_chunk_max_bytes", 20971520))

    def get_collab_data_dir(self) -> str:
        """Cloud directory where shared data files are uploaded."""
        return self.config.get("collab_data_dir", "medview_collab_data")
