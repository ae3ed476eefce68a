"""
Collaboration Channel and Cloud Storage

This module defines the interfaces of the two external collaborators used for
realtime collaboration:

- CollaborationChannel: replicates one shared scene object between the
  members of a room, carries chat messages and announces the data files the
  room owner has shared.
- CloudStorage: stores uploaded data files and serves them back by id.

It also provides in-process implementations (LocalCollaborationHub,
LocalCollaborationChannel, InMemoryCloudStorage) that connect several viewers
living in the same application, used by the demo front end and the tests.

The replicated object is last-write-wins as a whole; merging is the
consumer's job (see core.scene_synchronizer).

Inputs:
    - Scene dictionaries
    - Data file lists [{"id", "url", "imgFObjId"}]
    - Chat messages

Outputs:
    - connected, object_changed, data_files_shared, chat_message_received and
      collaborator_disconnected signals

Requirements:
    - PySide6 for QObject/Signal
"""

import copy
import itertools
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from PySide6.QtCore import QObject, Signal

from core.rendering import QObjectABCMeta


class CollaborationError(Exception):
    """Raised when a collaboration operation cannot be carried out."""
    pass


class AuthorizationError(CollaborationError):
    """Raised when collaboration is attempted without authorization."""
    pass


class CloudStorage(ABC):
    """Abstract cloud file storage with callback-based operations."""

    @abstractmethod
    def read_blob(self, file_id: str, callback: Callable[[Optional[bytes]], None]) -> None:
        """Read a stored file; callback receives its bytes or None."""

    @abstractmethod
    def write_file(self, path: str, data: bytes, callback: Callable[[Dict[str, Any]], None]) -> None:
        """Store a file; callback receives a response dict with the new file's "id"."""

    @abstractmethod
    def create_path(self, path: str, callback: Callable[[], None]) -> None:
        """Create a directory path (no-op if it exists); callback fires when done."""


class InMemoryCloudStorage(CloudStorage):
    """
    Cloud storage kept in process memory.

    Callbacks are invoked synchronously.
    """

    def __init__(self):
        self._blobs: Dict[str, bytes] = {}
        self._paths: Dict[str, str] = {}  # path -> file id
        self._dirs: set = set()
        self._ids = itertools.count(1)

    def read_blob(self, file_id: str, callback: Callable[[Optional[bytes]], None]) -> None:
        callback(self._blobs.get(file_id))

    def write_file(self, path: str, data: bytes, callback: Callable[[Dict[str, Any]], None]) -> None:
        file_id = f"blob-{next(self._ids)}"
        self._blobs[file_id] = bytes(data)
        self._paths[path] = file_id
        callback({"id": file_id, "path": path})

    def create_path(self, path: str, callback: Callable[[], None]) -> None:
        self._dirs.add(path.rstrip('/'))
        callback()

    def has_path(self, path: str) -> bool:
        """True if the directory was created."""
        return path.rstrip('/') in self._dirs

    def file_id_for(self, path: str) -> Optional[str]:
        """Id of the file last written to path."""
        return self._paths.get(path)


class CollaborationChannel(QObject, metaclass=QObjectABCMeta):
    """
    Abstract realtime collaboration channel.

    Attributes:
        collaborator_info: {"id", "name", "mail"} of the local collaborator
        storage: CloudStorage used for shared data files
        data_files_base_dir: Storage directory for shared data files
        is_on: True while connected to a room
        is_owner: True if this collaborator started the room
        room_id: Id of the current room
    """

    # Signals
    connected = Signal(str)  # room id
    collaborator_disconnected = Signal(dict)  # collaborator info
    object_changed = Signal()  # shared object changed by a remote collaborator
    data_files_shared = Signal(dict, list)  # collaborator info, [{"id", "url", "imgFObjId"}]
    chat_message_received = Signal(dict)  # {"user", "msg"}

    def __init__(self, collaborator_info: Dict[str, Any], storage: Optional[CloudStorage] = None,
                 data_files_base_dir: str = "medview_collab_data", parent: Optional[QObject] = None):
        super().__init__(parent)
        self.collaborator_info = dict(collaborator_info)
        self.storage = storage
        self.data_files_base_dir = data_files_base_dir
        self.is_on = False
        self.is_owner = False
        self.room_id: Optional[str] = None

    @abstractmethod
    def authorize(self, immediate: bool, callback: Callable[[bool], None]) -> None:
        """
        Obtain authorization to collaborate.

        Args:
            immediate: True to try silently, False to prompt the user
            callback: Called with True if access was granted
        """

    @abstractmethod
    def start(self, scene: Dict[str, Any]) -> None:
        """Start a new room as its owner with an initial shared object."""

    @abstractmethod
    def join(self, room_id: str) -> None:
        """Join an existing room as a collaborator."""

    @abstractmethod
    def leave(self) -> None:
        """Leave the current room."""

    @abstractmethod
    def get_object(self) -> Optional[Dict[str, Any]]:
        """Get a copy of the shared object, or None when not connected."""

    @abstractmethod
    def set_object(self, obj: Dict[str, Any]) -> None:
        """Replace the shared object."""

    @abstractmethod
    def set_data_file_list(self, files: List[Dict[str, Any]]) -> None:
        """Share the list of uploaded data files with the room (owner only)."""

    @abstractmethod
    def send_chat_message(self, text: str) -> None:
        """Send a chat message to the other room members."""


class LocalCollaborationHub(QObject):
    """
    In-process collaboration server connecting LocalCollaborationChannels.

    Each room holds the shared object, the member channels, the owner and
    the data file list shared by the owner.
    """

    def __init__(self, storage: Optional[CloudStorage] = None, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.storage = storage if storage is not None else InMemoryCloudStorage()
        self._rooms: Dict[str, Dict[str, Any]] = {}
        self._room_numbers = itertools.count(1)

    def create_channel(self, collaborator_info: Dict[str, Any], **kwargs) -> "LocalCollaborationChannel":
        """Create a channel bound to this hub."""
        return LocalCollaborationChannel(self, collaborator_info, **kwargs)

    def create_room(self, owner: "LocalCollaborationChannel", obj: Dict[str, Any]) -> str:
        room_id = f"room-{next(self._room_numbers)}"
        self._rooms[room_id] = {
            "object": copy.deepcopy(obj),
            "channels": [owner],
            "owner": owner,
            "data_files": None,
        }
        return room_id

    def join_room(self, room_id: str, channel: "LocalCollaborationChannel") -> None:
        room = self._rooms.get(room_id)
        if room is None:
            raise CollaborationError(f"Unknown room: {room_id}")
        if channel not in room["channels"]:
            room["channels"].append(channel)

    def share_pending_files(self, room_id: str, channel: "LocalCollaborationChannel") -> None:
        """Announce already shared data files to a member that joined late."""
        room = self._rooms.get(room_id)
        if room is not None and room["data_files"] is not None and channel is not room["owner"]:
            channel.data_files_shared.emit(dict(channel.collaborator_info), copy.deepcopy(room["data_files"]))

    def leave_room(self, room_id: str, channel: "LocalCollaborationChannel") -> None:
        room = self._rooms.get(room_id)
        if room is None or channel not in room["channels"]:
            return
        room["channels"].remove(channel)
        for member in list(room["channels"]):
            member.collaborator_disconnected.emit(dict(channel.collaborator_info))
        if not room["channels"]:
            del self._rooms[room_id]

    def room_ids(self) -> List[str]:
        return list(self._rooms)

    def get_object(self, room_id: str) -> Optional[Dict[str, Any]]:
        room = self._rooms.get(room_id)
        return copy.deepcopy(room["object"]) if room else None

    def set_object(self, room_id: str, sender: "LocalCollaborationChannel", obj: Dict[str, Any]) -> None:
        room = self._rooms.get(room_id)
        if room is None:
            raise CollaborationError(f"Unknown room: {room_id}")
        room["object"] = copy.deepcopy(obj)
        for member in list(room["channels"]):
            if member is not sender:
                member.object_changed.emit()

    def set_data_file_list(self, room_id: str, files: List[Dict[str, Any]]) -> None:
        room = self._rooms.get(room_id)
        if room is None:
            raise CollaborationError(f"Unknown room: {room_id}")
        room["data_files"] = copy.deepcopy(files)
        for member in list(room["channels"]):
            if member is not room["owner"]:
                member.data_files_shared.emit(dict(member.collaborator_info), copy.deepcopy(files))

    def send_chat_message(self, room_id: str, sender: "LocalCollaborationChannel", text: str) -> None:
        room = self._rooms.get(room_id)
        if room is None:
            return
        msg = {"user": sender.collaborator_info.get("name", ""), "msg": text}
        for member in list(room["channels"]):
            if member is not sender:
                member.chat_message_received.emit(dict(msg))


class LocalCollaborationChannel(CollaborationChannel):
    """
    Collaboration channel connected to a LocalCollaborationHub.

    Authorization is simulated: grant_silently controls the immediate
    (silent) attempt and grant_on_prompt the interactive one.
    """

    def __init__(self, hub: LocalCollaborationHub, collaborator_info: Dict[str, Any],
                 grant_silently: bool = True, grant_on_prompt: bool = True,
                 data_files_base_dir: str = "medview_collab_data", parent: Optional[QObject] = None):
        super().__init__(collaborator_info, hub.storage, data_files_base_dir, parent)
        self.hub = hub
        self.grant_silently = grant_silently
        self.grant_on_prompt = grant_on_prompt
        self.authorized = False

    def authorize(self, immediate: bool, callback: Callable[[bool], None]) -> None:
        granted = self.grant_silently if immediate else self.grant_on_prompt
        self.authorized = self.authorized or granted
        print(f"[COLLAB] Authorization {'granted' if granted else 'refused'} "
              f"({'silent' if immediate else 'prompt'}) for {self.collaborator_info.get('mail', '')}")
        callback(granted)

    def _require_authorized(self) -> None:
        if not self.authorized:
            raise AuthorizationError("Collaboration requires authorization")

    def _require_on(self) -> None:
        if not self.is_on:
            raise CollaborationError("Collaboration is not on")

    def start(self, scene: Dict[str, Any]) -> None:
        self._require_authorized()
        if self.is_on:
            raise CollaborationError("Already connected to a room")
        self.room_id = self.hub.create_room(self, scene)
        self.is_owner = True
        self.is_on = True
        print(f"[COLLAB] Started room {self.room_id}")
        self.connected.emit(self.room_id)

    def join(self, room_id: str) -> None:
        self._require_authorized()
        if self.is_on:
            raise CollaborationError("Already connected to a room")
        self.hub.join_room(room_id, self)
        self.room_id = room_id
        self.is_owner = False
        self.is_on = True
        print(f"[COLLAB] Joined room {room_id}")
        self.connected.emit(room_id)
        self.hub.share_pending_files(room_id, self)

    def leave(self) -> None:
        if not self.is_on:
            return
        room_id = self.room_id
        self.is_on = False
        self.is_owner = False
        self.room_id = None
        self.hub.leave_room(room_id, self)
        print(f"[COLLAB] Left room {room_id}")

    def get_object(self) -> Optional[Dict[str, Any]]:
        if not self.is_on:
            return None
        return self.hub.get_object(self.room_id)

    def set_object(self, obj: Dict[str, Any]) -> None:
        self._require_on()
        self.hub.set_object(self.room_id, self, obj)

    def set_data_file_list(self, files: List[Dict[str, Any]]) -> None:
        self._require_on()
        if not self.is_owner:
            raise CollaborationError("Only the room owner can share data files")
        self.hub.set_data_file_list(self.room_id, files)

    def send_chat_message(self, text: str) -> None:
        self._require_on()
        self.hub.send_chat_message(self.room_id, self, text)
