"""
Pane Containers and Drag-and-Drop

This module provides the base class of the viewer's drag-and-drop regions
(renderers box, thumbnails bars, toolbar, trash) and the gesture state
machine that moves items between them.

A gesture goes idle -> pending (pressed, below the travel threshold) ->
dragging -> one of droppedOnSelf, droppedOnPeerContainer, droppedOnTrash or
cancelled. What a drop means is decided by a DropHandler strategy injected
into the SortableGroup; only reorders within one container are real moves,
every cross-container drop is turned into a data operation by the handler and
visually cancelled.

The top-level components are themselves the children of a "componentRow"
container, so moving a whole thumbnails bar, the toolbar or the trash along
the row is a gesture of the same kind.

Inputs:
    - Press, move and release positions of the pointer
    - Drop targets

Outputs:
    - Gesture state transitions
    - Reordered children, deferred visibility updates
    - children_changed / geometry_changed signals

Requirements:
    - PySide6 for QObject/Signal
    - utils.debug_log for drag tracing
"""

import math
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Literal, Optional, Tuple

from PySide6.QtCore import QObject, Signal

from utils.debug_log import drag_debug


# componentRow holds the top-level components themselves, by container id
ContainerRole = Literal["renderBox", "thumbnailsBar", "toolbar", "trash", "componentRow"]

DragState = Literal["idle", "pending", "dragging", "droppedOnSelf",
                    "droppedOnPeerContainer", "droppedOnTrash", "cancelled"]

TERMINAL_STATES = ("droppedOnSelf", "droppedOnPeerContainer", "droppedOnTrash", "cancelled")

# Drop outcomes reported by a DropHandler
DropOutcome = Literal["moved", "cancelled", "rejected"]


class PaneContainer(QObject):
    """
    A drag-and-drop region holding an ordered list of child item ids.

    Attributes:
        role: Container role
        container_id: Unique id of the container
        children: Ordered child item ids
        capacity: Maximum number of children (None = unbounded)
        drag_min_distance: Pointer travel before a drag of a child registers
        left, right, width: Horizontal geometry (right is None for "auto")
    """

    # Signals
    children_changed = Signal()
    geometry_changed = Signal()

    def __init__(self, role: ContainerRole, container_id: str, width: float = 0,
                 capacity: Optional[int] = None, drag_min_distance: float = 0,
                 parent: Optional[QObject] = None):
        super().__init__(parent)
        self.role = role
        self.container_id = container_id
        self.children: List[Any] = []
        self.capacity = capacity
        self.drag_min_distance = drag_min_distance
        self.group: Optional["SortableGroup"] = None

        self.left: Optional[float] = 0
        self.right: Optional[float] = None
        self.width = width
        self.overflow_visible = False
        self._hidden: set = set()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.container_id!r}, children={self.children})"

    def is_full(self) -> bool:
        """True if the container holds as many children as it can."""
        return self.capacity is not None and len(self.children) >= self.capacity

    def add_child(self, item_id: Any, index: Optional[int] = None) -> bool:
        """
        Append or insert a child.

        Args:
            item_id: Child id
            index: Insert position (appends when None)

        Returns:
            False if the child is already present or the container is full
        """
        if item_id in self.children or self.is_full():
            return False
        if index is None:
            self.children.append(item_id)
        else:
            self.children.insert(max(0, min(index, len(self.children))), item_id)
        self.children_changed.emit()
        return True

    def remove_child(self, item_id: Any) -> bool:
        """Remove a child; returns False if it was not present."""
        if item_id not in self.children:
            return False
        self.children.remove(item_id)
        self._hidden.discard(item_id)
        self.children_changed.emit()
        return True

    def move_child(self, item_id: Any, index: int) -> bool:
        """
        Reorder a child within the container.

        Args:
            item_id: Child id
            index: New position (clamped)

        Returns:
            True if the order changed
        """
        if item_id not in self.children:
            return False
        old_index = self.children.index(item_id)
        self.children.pop(old_index)
        index = max(0, min(index, len(self.children)))
        self.children.insert(index, item_id)
        if index == old_index:
            return False
        self.children_changed.emit()
        return True

    def set_children(self, item_ids: List[Any]) -> None:
        """Replace the children with item_ids, in that order."""
        item_ids = list(item_ids)
        if item_ids == self.children:
            return
        self.children = item_ids
        self._hidden &= set(item_ids)
        self.children_changed.emit()

    def set_child_visible(self, item_id: Any, visible: bool) -> None:
        """
        Show or hide a child.

        The change waits for the end of an active drag gesture in the
        container's group.
        """
        def apply() -> None:
            if visible:
                self._hidden.discard(item_id)
            else:
                self._hidden.add(item_id)
            self.children_changed.emit()

        if self.group is not None:
            self.group.defer(apply)
        else:
            apply()

    def is_child_visible(self, item_id: Any) -> bool:
        return item_id in self.children and item_id not in self._hidden

    def visible_children(self) -> List[Any]:
        return [item_id for item_id in self.children if item_id not in self._hidden]

    def set_geometry(self, left: Optional[float], right: Optional[float], width: Optional[float] = None) -> None:
        """Set the horizontal edges (None means auto) and optionally the width."""
        self.left = left
        self.right = right
        if width is not None:
            self.width = width
        self.geometry_changed.emit()


class DragGesture:
    """
    One drag of a child item out of a source container.

    Created by SortableGroup.begin_drag(); driven by move() and drop().
    """

    def __init__(self, group: "SortableGroup", source: PaneContainer, item_id: Any,
                 start_pos: Tuple[float, float]):
        self.group = group
        self.source = source
        self.item_id = item_id
        self.start_pos = start_pos
        self.pos = start_pos
        self.min_distance = source.drag_min_distance
        self.state: DragState = "pending"
        self.helper: Optional[Dict[str, Any]] = None
        self.target: Optional[PaneContainer] = None
        self.outcome: Optional[DropOutcome] = None

    def __repr__(self) -> str:
        return f"DragGesture(item={self.item_id}, source={self.source.container_id}, state={self.state})"

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def travel(self) -> Tuple[float, float]:
        """Signed pointer travel (dx, dy) since the press."""
        return (self.pos[0] - self.start_pos[0], self.pos[1] - self.start_pos[1])

    def move(self, pos: Tuple[float, float]) -> DragState:
        """
        Report a pointer move.

        The gesture becomes a drag once the pointer travelled the source
        container's minimum distance; the moving helper is then computed and
        the handler's on_start called.

        Args:
            pos: Pointer position

        Returns:
            The gesture state
        """
        if self.finished:
            return self.state
        self.pos = pos
        if self.state == "pending":
            distance = math.hypot(*self.travel)
            if distance >= self.min_distance:
                self.state = "dragging"
                handler = self.group.handler
                if handler is not None:
                    self.helper = handler.compute_moving_helper(self)
                    handler.on_start(self)
                drag_debug(f"drag started: {self!r} after {distance:.1f}px")
        return self.state

    def drop(self, target: Optional[PaneContainer], index: Optional[int] = None) -> DragState:
        """
        Release the pointer over a container.

        Args:
            target: Container under the pointer (None for empty space)
            index: Drop position inside the target (used for reorders)

        Returns:
            The terminal gesture state
        """
        if self.finished:
            return self.state
        if self.state == "pending" or target is None:
            # A click or a release outside every container
            return self._finish("cancelled", "cancelled")

        self.target = target
        if target is self.source:
            state: DragState = "droppedOnSelf"
        elif target.role == "trash":
            state = "droppedOnTrash"
        else:
            state = "droppedOnPeerContainer"
        self.state = state

        outcome: DropOutcome = "moved" if target is self.source else "cancelled"
        handler = self.group.handler
        if handler is not None:
            outcome = handler.on_before_stop(self, target)

        if outcome == "moved" and target is self.source and index is not None:
            self.source.move_child(self.item_id, index)
        return self._finish(state, outcome)

    def cancel(self) -> DragState:
        """Abort the gesture (e.g. Escape pressed)."""
        if self.finished:
            return self.state
        return self._finish("cancelled", "cancelled")

    def _finish(self, state: DragState, outcome: DropOutcome) -> DragState:
        self.state = state
        self.outcome = outcome
        drag_debug(f"drag finished: {self!r} outcome={outcome}")
        self.group._end_gesture(self)
        return state


class DropHandler(ABC):
    """Strategy deciding what the gestures of a SortableGroup do."""

    @abstractmethod
    def compute_moving_helper(self, gesture: DragGesture) -> Dict[str, Any]:
        """Describe the visual that follows the pointer while dragging."""

    @abstractmethod
    def on_start(self, gesture: DragGesture) -> None:
        """Called once when the gesture becomes a drag."""

    @abstractmethod
    def on_before_stop(self, gesture: DragGesture, target: PaneContainer) -> DropOutcome:
        """
        Resolve a drop before the gesture ends.

        Returns:
            "moved" to keep a reorder, "cancelled" to snap the item back,
            "rejected" when the target refused the item
        """


class SortableGroup(QObject):
    """
    Set of containers sharing drag-and-drop.

    Only one gesture is active at a time; visibility updates requested while
    a gesture is active run when it ends.
    """

    # Signals
    gesture_started = Signal(object)  # DragGesture
    gesture_finished = Signal(object)  # DragGesture

    def __init__(self, handler: Optional[DropHandler] = None, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.handler = handler
        self.containers: List[PaneContainer] = []
        self.active_gesture: Optional[DragGesture] = None
        self._deferred: List[Callable[[], None]] = []

    def add_container(self, container: PaneContainer) -> None:
        if container not in self.containers:
            self.containers.append(container)
        container.group = self

    def remove_container(self, container: PaneContainer) -> None:
        if container in self.containers:
            self.containers.remove(container)
        if container.group is self:
            container.group = None

    def find_container(self, container_id: str) -> Optional[PaneContainer]:
        for container in self.containers:
            if container.container_id == container_id:
                return container
        return None

    def begin_drag(self, source: PaneContainer, item_id: Any,
                   pos: Tuple[float, float]) -> Optional[DragGesture]:
        """
        Press on a child item.

        Args:
            source: Container holding the item
            item_id: Pressed child
            pos: Pointer position

        Returns:
            The new gesture, or None if another gesture is active or the item
            is not a visible child of the source
        """
        if self.active_gesture is not None:
            drag_debug(f"press ignored, gesture in progress: {self.active_gesture!r}")
            return None
        if not source.is_child_visible(item_id):
            return None
        gesture = DragGesture(self, source, item_id, pos)
        self.active_gesture = gesture
        self.gesture_started.emit(gesture)
        return gesture

    def defer(self, fn: Callable[[], None]) -> None:
        """Run fn now, or when the active gesture ends."""
        if self.active_gesture is None:
            fn()
        else:
            self._deferred.append(fn)

    def _end_gesture(self, gesture: DragGesture) -> None:
        if self.active_gesture is gesture:
            self.active_gesture = None
        self.gesture_finished.emit(gesture)
        deferred, self._deferred = self._deferred, []
        for fn in deferred:
            fn()
