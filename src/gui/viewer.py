"""
Viewer

This module provides the Viewer, the orchestrator tying together the image
file registry, the drag-and-drop containers (thumbnails bars, renderers box,
toolbar, trash), the layout, the scene synchronizer and the optional
realtime collaboration.

Data flow:
    input file descriptors -> FileClassifier -> ImageFileRegistry (one batch
    per add_data call) -> ThumbnailsBar per batch; thumbnails dropped on the
    RenderersBox become RendererPanes; every local change to the panes is
    pushed as a whole Scene to the CollaborationChannel, and remote scenes are
    reconciled back into the panes.

When collaboration starts the owner uploads every data file to cloud storage
and shares the list with the room; collaborators then load the same records
from the cloud, reusing the owner's record ids.

Inputs:
    - Input file descriptors {"url", "file"?, "cloud_id"?, "img_fobj_id"?}
    - RenderingEngine, optional CollaborationChannel, ConfigManager

Outputs:
    - Viewer state (registry, containers, panes)
    - user_notice, batch_added, batch_removed, panes_changed,
      collaboration_changed, chat_message_received, data_files_uploaded signals

Requirements:
    - PySide6 for QObject/Signal
    - core modules for classification, registry, reading, scenes and collaboration
    - gui modules for containers and layout
"""

from typing import Any, Dict, List, Optional

from PySide6.QtCore import QObject, Signal

from core.collaboration import CollaborationChannel, CollaborationError
from core.file_classifier import FileClassifier
from core.file_reader import FileReader, ReadJoin
from core.image_file_record import ImageFileRecord
from core.image_file_registry import ImageFileRegistry
from core.rendering import RenderingEngine, RendererPane
from core.scene_synchronizer import SceneSynchronizer
from core.zip_archive import chunk_urls, zip_files
from gui.drag_drop_coordinator import DragDropCoordinator
from gui.layout_manager import LayoutManager
from gui.pane_container import DragGesture, PaneContainer, SortableGroup
from gui.renderers_box import RenderersBox
from gui.thumbnails_bar import ThumbnailsBar
from gui.toolbar import Toolbar
from gui.trash import Trash
from utils.config_manager import ConfigManager
from utils.debug_log import debug_log
from utils.file_utils import get_file_name


class Viewer(QObject):
    """
    Collaborative multi-pane image viewer.

    Features:
    - Batches of data files classified into records, one thumbnails bar per batch
    - Up to four render panes fed by drag and drop
    - Linked scrolling, selection, flip and camera state
    - Whole-scene publishing and selective reconciliation of remote scenes
    - Owner-side upload of data files for collaborators
    """

    # Signals
    user_notice = Signal(str)
    batch_added = Signal(int)
    batch_removed = Signal(int)
    panes_changed = Signal()
    collaboration_changed = Signal(bool)
    chat_message_received = Signal(dict)
    collaborator_disconnected = Signal(dict)
    data_files_uploaded = Signal(list)

    def __init__(self, container_id: str, engine: RenderingEngine,
                 channel: Optional[CollaborationChannel] = None,
                 config: Optional[ConfigManager] = None, parent: Optional[QObject] = None):
        """
        Initialize the viewer.

        Args:
            container_id: Id of the viewer; prefixes every container id
            engine: Rendering engine for the panes
            channel: Optional collaboration channel (collaboration disabled if None)
            config: Configuration (defaults to the user's configuration file)
            parent: Optional Qt parent
        """
        super().__init__(parent)
        self.container_id = container_id
        self.engine = engine
        self.channel = channel
        self.config = config if config is not None else ConfigManager()

        storage = channel.storage if channel is not None else None
        self.reader = FileReader(storage, self)
        self.registry = ImageFileRegistry(container_id)
        self.classifier = FileClassifier()
        self.layout_manager = LayoutManager(self.config.get_viewer_width(), self.config.get_layout_gutter())
        self.synchronizer = SceneSynchronizer(self)
        self.group = SortableGroup(DragDropCoordinator(self), self)

        self.renderers_linked = False
        self.thumbnails_bars: Dict[int, ThumbnailsBar] = {}

        self.renderers_box = RenderersBox(
            f"{container_id}_renders", engine, self.reader,
            capacity=self.config.get_max_renderers(),
            drag_min_distance=self.config.get_drag_min_distance(),
            parent=self,
        )
        self.toolbar = Toolbar(f"{container_id}_toolbar", collaboration_enabled=channel is not None, parent=self)
        self.trash = Trash(f"{container_id}_trash", parent=self)
        self.component_row = PaneContainer("componentRow", f"{container_id}_row",
                                           drag_min_distance=self.config.get_drag_min_distance(), parent=self)

        self.group.add_container(self.renderers_box)
        self.group.add_container(self.toolbar)
        self.group.add_container(self.trash.drop_region)
        self.group.add_container(self.component_row)
        self.components: List[PaneContainer] = [self.renderers_box, self.toolbar, self.trash]

        self.renderers_box.pane_changed.connect(self._on_pane_changed)
        self.toolbar.link_clicked.connect(self.toggle_link)
        self.toolbar.collab_clicked.connect(self._on_collab_clicked)
        self.toolbar.auth_clicked.connect(self._on_auth_clicked)

        if channel is not None:
            channel.connected.connect(self.handle_on_connect)
            channel.data_files_shared.connect(self.handle_on_data_files_shared)
            channel.object_changed.connect(self.handle_on_collab_obj_changed)
            channel.chat_message_received.connect(self.chat_message_received)
            channel.collaborator_disconnected.connect(self._on_collaborator_disconnected)

        self.layout()

    # ------------------------------------------------------------------
    # Host interface used by the SceneSynchronizer
    # ------------------------------------------------------------------

    @property
    def panes(self) -> Dict[int, RendererPane]:
        """Active panes by record id."""
        return self.renderers_box.panes

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    def init(self, descriptors: Optional[List[Dict[str, Any]]] = None) -> None:
        """
        Start the viewer on a set of files, replacing any previous data.

        Args:
            descriptors: Input file descriptors
        """
        with self.synchronizer.hold():
            self.destroy()
        if descriptors:
            self.add_data(descriptors)
        self.render_scene()

    def add_data(self, descriptors: List[Dict[str, Any]]) -> Optional[int]:
        """
        Classify files into records and show them in a new thumbnails bar.

        Args:
            descriptors: Input file descriptors

        Returns:
            Batch id, or None if no supported record was found
        """
        records = self.classifier.classify(descriptors, self.registry.next_id())
        if not records:
            print("[CLASSIFY] No supported data files found")
            return None

        batch_id = self.registry.next_batch_id()
        self.registry.add(records, batch_id)

        bar = ThumbnailsBar(batch_id, f"{self.container_id}_thumbnailbar{batch_id}",
                            width=self.config.get_thumbnails_bar_width(),
                            thumbnail_size=self.config.get_thumbnail_size(), parent=self)
        bar.add_records(records)
        self.thumbnails_bars[batch_id] = bar
        self.group.add_container(bar)
        self.components.insert(0, bar)
        self.layout()

        bar.load_thumbnails(records, self.reader, self.engine)
        self.batch_added.emit(batch_id)
        return batch_id

    def remove_batch(self, batch_id: int) -> bool:
        """
        Remove every record of a batch, its panes and its thumbnails bar.

        Args:
            batch_id: Batch id

        Returns:
            False if the batch does not exist
        """
        bar = self.thumbnails_bars.pop(batch_id, None)
        if bar is None:
            return False

        with self.synchronizer.hold():
            for record in self.registry.get_batch(batch_id):
                if record.id in self.panes:
                    self.deactivate(record.id)
        self.registry.remove_batch(batch_id)

        self.group.remove_container(bar)
        self.components.remove(bar)
        bar.deleteLater()
        self.layout()

        self.batch_removed.emit(batch_id)
        self.synchronizer.push()
        return True

    def remove_record(self, record_id: int) -> bool:
        """
        Remove one record with its pane and thumbnail.

        The thumbnails bar goes away with the last record of its batch.

        Args:
            record_id: Record id

        Returns:
            False if the record does not exist
        """
        record = self.registry.get(record_id)
        if record is None:
            return False

        with self.synchronizer.hold():
            was_shown = self.deactivate(record_id)
        self.registry.remove(record_id)
        batch_id = record.thumbnails_bar_id
        bar = self.thumbnails_bars.get(batch_id)
        if bar is not None:
            bar.remove_record(record_id)
            if not self.registry.has_batch(batch_id):
                return self.remove_batch(batch_id)

        print(f"[REGISTRY] Removed record {record_id}")
        if was_shown:
            self.synchronizer.push()
        return True

    def find_thumbnails_bar(self, record_id: int) -> Optional[ThumbnailsBar]:
        """Thumbnails bar holding a record's thumbnail."""
        for bar in self.thumbnails_bars.values():
            if record_id in bar.thumbnails:
                return bar
        return None

    # ------------------------------------------------------------------
    # Panes
    # ------------------------------------------------------------------

    def activate(self, record_id: int, orientation: Optional[str] = None) -> bool:
        """
        Show a record in a new render pane.

        Args:
            record_id: Record id
            orientation: "X", "Y" or "Z" (defaults to the configured orientation)

        Returns:
            False if the record is unknown, not renderable, already shown or
            the renderers box is full
        """
        record = self.registry.get(record_id)
        if record is None:
            print(f"Warning: cannot show record {record_id}: no such record")
            return False
        if not record.is_renderable():
            print(f"Warning: cannot show record {record_id}: {record.image_kind} is not renderable")
            return False
        if record_id in self.panes:
            return False
        if self.renderers_box.is_full():
            self.notify_user(f"Reached maximum number of renders allowed: {self.renderers_box.capacity}")
            return False

        orientation = orientation or self.config.get_default_orientation()
        pane = self.renderers_box.add_pane(record, self.registry.get_container_id_for(record_id), orientation)
        if pane is None:
            return False

        bar = self.find_thumbnails_bar(record_id)
        if bar is not None:
            bar.set_child_visible(record_id, False)

        self.toolbar.update_link_button(len(self.panes), self.renderers_linked)
        self.panes_changed.emit()
        self.synchronizer.push()
        return True

    def deactivate(self, record_id: int) -> bool:
        """
        Close a record's render pane and show its thumbnail again.

        Removing panes down to one while linked turns linking off.

        Args:
            record_id: Record id

        Returns:
            False if the record has no pane
        """
        if not self.renderers_box.remove_pane(record_id):
            return False

        bar = self.find_thumbnails_bar(record_id)
        if bar is not None:
            bar.set_child_visible(record_id, True)

        if self.renderers_linked and len(self.panes) < 2:
            self.set_linked(False)
        self.toolbar.update_link_button(len(self.panes), self.renderers_linked)
        self.panes_changed.emit()
        self.synchronizer.push()
        return True

    def recreate_pane(self, record_id: int, orientation: str) -> bool:
        """Re-create a pane with another orientation (no push)."""
        return self.renderers_box.recreate_pane(record_id, orientation)

    def set_orientation(self, record_id: int, orientation: str) -> bool:
        """
        Change the orientation of a pane.

        Args:
            record_id: Pane id
            orientation: "X", "Y" or "Z"

        Returns:
            False if there is no such pane or the orientation is unchanged
        """
        pane = self.panes.get(record_id)
        if pane is None or pane.orientation == orientation:
            return False
        self.recreate_pane(record_id, orientation)
        self.synchronizer.push()
        return True

    def refresh_pane(self, record_id: int) -> None:
        """Push a pane's state to the engine and update its overlay."""
        pane = self.panes.get(record_id)
        if pane is None:
            return
        self.renderers_box.update_overlay(pane)
        self.engine.update_pane(pane.handle, pane)

    def set_linked(self, linked: bool) -> None:
        """Set the link state without publishing it."""
        self.renderers_linked = linked
        self.renderers_box.set_linked(linked)
        self.toolbar.update_link_button(len(self.panes), linked)

    def toggle_link(self) -> None:
        """Link or unlink the panes' scrolling."""
        self.set_linked(not self.renderers_linked)
        print(f"[SCENE] Views {'linked' if self.renderers_linked else 'unlinked'}")
        self.synchronizer.push()

    def select_pane(self, record_id: int, selected: bool) -> bool:
        """
        Select or deselect a pane.

        Returns:
            True if the selection changed
        """
        changed = self.renderers_box.select_pane(record_id, selected)
        if changed:
            self.panes_changed.emit()
            self.synchronizer.push()
        return changed

    def _on_pane_changed(self, record_id: int) -> None:
        self.synchronizer.push()

    def render_scene(self) -> None:
        """
        Render the current scene.

        With collaboration on, the shared scene is reconciled into the panes;
        otherwise the first volume or DICOM series is shown.
        """
        if self.channel is not None and self.channel.is_on:
            self.synchronizer.reconcile(self.channel.get_object())
            return
        if self.panes:
            return
        for record in self.registry.live_records():
            if record.is_renderable():
                self.activate(record.id)
                break

    def notify_user(self, message: str) -> None:
        print(f"Warning: {message}")
        self.user_notice.emit(message)

    def destroy(self) -> None:
        """Remove every pane, thumbnails bar and record."""
        for record_id in list(self.panes):
            self.deactivate(record_id)
        for batch_id in list(self.thumbnails_bars):
            bar = self.thumbnails_bars.pop(batch_id)
            self.group.remove_container(bar)
            self.components.remove(bar)
            bar.deleteLater()
            self.batch_removed.emit(batch_id)
        self.registry.clear()
        self.set_linked(False)
        self.layout()

    # ------------------------------------------------------------------
    # Layout and drag and drop
    # ------------------------------------------------------------------

    def layout(self) -> None:
        """Lay out the component row."""
        self.layout_manager.layout(self.components)
        self.component_row.set_children([component.container_id for component in self.components])

    def find_component(self, container_id: str) -> Optional[PaneContainer]:
        """Top-level component with the given container id."""
        for component in self.components:
            if component.container_id == container_id:
                return component
        return None

    def move_component(self, component: PaneContainer, delta_x: float) -> None:
        """
        Move a top-level component to the front or back of the row.

        Args:
            component: Dragged component
            delta_x: Horizontal drag distance (negative = towards the front)
        """
        self.layout_manager.move_component(self.components, component, delta_x)
        self.component_row.set_children([c.container_id for c in self.components])
        print(f"[DRAG] Component order: {self.component_row.children}")

    def begin_drag(self, container: PaneContainer, item_id: Any, pos) -> Optional[DragGesture]:
        """Press on an item of a container; see SortableGroup.begin_drag()."""
        return self.group.begin_drag(container, item_id, pos)

    # ------------------------------------------------------------------
    # Collaboration
    # ------------------------------------------------------------------

    def start_collaboration(self) -> bool:
        """
        Start a collaboration room as its owner.

        Authorization is attempted silently first; if refused the Authorize
        button is shown and the user has to click it.

        Returns:
            False if collaboration is not enabled for this viewer
        """
        if self.channel is None:
            print("Error: collaboration was not enabled for this viewer")
            return False

        def on_authorized(granted: bool) -> None:
            if granted:
                self._start_room()
            else:
                self.toolbar.show_authorize()

        self.channel.authorize(True, on_authorized)
        return True

    def join_collaboration(self, room_id: str) -> bool:
        """
        Join an existing collaboration room.

        Args:
            room_id: Room to join

        Returns:
            False if collaboration is not enabled or joining failed
        """
        if self.channel is None:
            print("Error: collaboration was not enabled for this viewer")
            return False

        result = {"joined": False}

        def on_authorized(granted: bool) -> None:
            if not granted:
                self.toolbar.show_authorize()
                return
            try:
                self.channel.join(room_id)
                result["joined"] = True
            except CollaborationError as e:
                self.notify_user(f"Could not join collaboration: {e}")

        self.channel.authorize(True, on_authorized)
        return result["joined"]

    def _start_room(self) -> None:
        try:
            self.channel.start(self.synchronizer.to_scene().to_dict())
        except CollaborationError as e:
            self.notify_user(f"Could not start collaboration: {e}")
            self.toolbar.show_authorize()

    def _on_auth_clicked(self) -> None:
        if self.channel is None:
            return

        def on_authorized(granted: bool) -> None:
            if granted:
                self._start_room()
            else:
                self.notify_user("Authorization was not granted")

        self.channel.authorize(False, on_authorized)

    def _on_collab_clicked(self) -> None:
        if self.channel is not None and self.channel.is_on:
            self.leave_collaboration()
        else:
            self.start_collaboration()

    def leave_collaboration(self) -> None:
        """Leave the current collaboration room."""
        if self.channel is None or not self.channel.is_on:
            return
        self.channel.leave()
        self.toolbar.set_collaborating(False)
        print(f"[COLLAB] Collaboration is on: {self.channel.is_on}")
        self.collaboration_changed.emit(False)

    def send_chat_message(self, text: str) -> bool:
        """
        Send a chat message to the other collaborators.

        Returns:
            False when not collaborating
        """
        if self.channel is None or not self.channel.is_on:
            return False
        self.channel.send_chat_message(text)
        return True

    def _on_collaborator_disconnected(self, collaborator_info: dict) -> None:
        self.notify_user(f"{collaborator_info.get('name', 'A collaborator')} has disconnected.")
        self.collaborator_disconnected.emit(collaborator_info)

    def handle_on_connect(self, room_id: str) -> None:
        """
        Handle the collaboration becoming ready.

        The owner uploads every data file and then shares the file list.

        Args:
            room_id: Room id
        """
        print(f"[COLLAB] Connected to room {room_id} (owner={self.channel.is_owner})")
        self.toolbar.set_collaborating(True, room_id)
        self.collaboration_changed.emit(True)
        if self.channel.is_owner:
            self.upload_data_files()

    def handle_on_data_files_shared(self, collaborator_info: dict, files: list) -> None:
        """
        Start the viewer on the data files shared by the room owner.

        Only a non-owner whose mail matches the announced collaborator reacts.

        Args:
            collaborator_info: Collaborator the files were shared with
            files: [{"id", "url", "imgFObjId"}]
        """
        if self.channel is None or self.channel.is_owner:
            return
        if self.channel.collaborator_info.get("mail") != collaborator_info.get("mail"):
            return
        descriptors = [{"url": f["url"], "cloud_id": f.get("id"), "img_fobj_id": f.get("imgFObjId")}
                       for f in files]
        print(f"[COLLAB] Loading {len(descriptors)} shared data file(s)")
        self.init(descriptors)

    def handle_on_collab_obj_changed(self) -> None:
        """Handle a remote change of the shared scene."""
        self.render_scene()

    def upload_data_files(self) -> Optional[ReadJoin]:
        """
        Upload the data files of every record to cloud storage and share the list.

        First every payload is gathered (sidecars raw, DICOM series zipped in
        chunks, single files raw); then all payloads are written and, when the
        last write completes, the list [{"id", "url", "imgFObjId"}] is shared.

        Returns:
            The ReadJoin gathering the payloads, or None without storage
        """
        storage = self.channel.storage if self.channel is not None else None
        if storage is None:
            print("Error: no cloud storage to upload data files to")
            return None

        jobs = []
        for record in self.registry.live_records():
            jobs.extend(self._upload_jobs(record))

        print(f"[UPLOAD] Gathering {len(jobs)} payload(s)")
        join = ReadJoin(len(jobs), lambda results: self._write_payloads(
            [payload for index in range(len(jobs)) for payload in (results.get(index) or [])]))
        tokens = [join.token(index) for index in range(len(jobs))]
        for job, token in zip(jobs, tokens):
            job(token)
        return join

    def _upload_jobs(self, record: ImageFileRecord) -> list:
        """
        Build the payload-gathering jobs of one record.

        Each job resolves its token with a list of (url, data, record id)
        tuples, or None if a file could not be read.
        """
        jobs = []
        max_bytes = self.config.get_zip_chunk_max_bytes()

        def raw_job(file_ref):
            url = record.base_url + file_ref.name

            def job(token):
                self.reader.read(file_ref, "bytes",
                                 lambda data: token.resolve(None if data is None else [(url, data, record.id)]))
            return job

        def zip_job():
            url = record.base_url + record.files[0].name + ".zip"

            def job(token):
                def on_read(data_list):
                    if any(data is None for data in data_list):
                        token.resolve(None)
                        return
                    chunks = zip_files([(f.name, data) for f, data in zip(record.files, data_list)], max_bytes)
                    token.resolve([(chunk_url, chunk, record.id)
                                   for chunk_url, chunk in zip(chunk_urls(url, len(chunks)), chunks)])
                self.reader.read_all(record.files, "bytes", on_read)
            return job

        if record.sidecar is not None:
            jobs.append(raw_job(record.sidecar))
        if record.thumbnail is not None:
            jobs.append(raw_job(record.thumbnail))
        if len(record.files) > 1 and record.image_kind == "dicomSeries":
            jobs.append(zip_job())
        else:
            jobs.extend(raw_job(file_ref) for file_ref in record.files)
        return jobs

    def _write_payloads(self, payloads: list) -> None:
        storage = self.channel.storage
        base_dir = self.channel.data_files_base_dir
        print(f"[UPLOAD] Writing {len(payloads)} file(s) to {base_dir}")

        def on_all_written(results: dict) -> None:
            files = [results[index] for index in range(len(payloads)) if results.get(index)]
            debug_log("viewer.py:_write_payloads", "Data files uploaded", {"count": len(files)},
                      session_id=self.channel.room_id or "viewer")
            if self.channel.is_on and self.channel.is_owner:
                self.channel.set_data_file_list(files)
            self.data_files_uploaded.emit(files)

        def write_all() -> None:
            join = ReadJoin(len(payloads), on_all_written)
            for index, (url, data, record_id) in enumerate(payloads):
                token = join.token(index)
                storage.write_file(
                    f"{base_dir}/{get_file_name(url)}", data,
                    lambda resp, url=url, record_id=record_id, token=token: token.resolve(
                        {"id": resp.get("id"), "url": url, "imgFObjId": record_id}))

        storage.create_path(base_dir, write_all)
