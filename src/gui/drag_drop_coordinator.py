"""
Drag and Drop Coordinator

This module decides what a drop between the viewer's containers means. Only
reorders inside one container are real moves; every other drop becomes a data
operation on the viewer and the dragged item snaps back:

- thumbnail -> renderers box: open the record in a new pane (rejected with a
  user notice when the box is full)
- render pane -> thumbnails bar: close the pane, its thumbnail reappears
- anything -> trash: remove the whole batch of the dragged record
- thumbnail -> another thumbnails bar: cancelled (batches are fixed)

A top-level component dragged along the component row is the one real
reparent: it moves to the front of the row when dragged leftwards and to the
back otherwise.

Inputs:
    - Drag gestures from the viewer's SortableGroup

Outputs:
    - Viewer activate/deactivate/remove_batch/move_component calls
    - Moving helper descriptions

Requirements:
    - gui.pane_container for the DropHandler interface
"""

from typing import Any, Dict

from gui.pane_container import DragGesture, DropHandler, DropOutcome, PaneContainer


class DragDropCoordinator(DropHandler):
    """
    Drop strategy of the viewer's containers.
    """

    def __init__(self, viewer):
        """
        Initialize the coordinator.

        Args:
            viewer: Viewer whose data operations drops trigger
        """
        self.viewer = viewer

    def compute_moving_helper(self, gesture: DragGesture) -> Dict[str, Any]:
        """
        Describe the visual following the pointer.

        A dragged render pane is represented by a clone of its thumbnail, not
        by its live render surface.
        """
        if gesture.source.role == "componentRow":
            return {"type": "componentClone", "container_id": gesture.item_id}
        record_id = gesture.item_id
        image = None
        bar = self.viewer.find_thumbnails_bar(record_id)
        if bar is not None:
            thumbnail = bar.get_thumbnail(record_id)
            image = thumbnail.image if thumbnail is not None else None
        return {"type": "thumbnailClone", "record_id": record_id, "image": image}

    def on_start(self, gesture: DragGesture) -> None:
        # Thumbnail strips must not clip the helper while it moves over them
        for bar in self.viewer.thumbnails_bars.values():
            bar.overflow_visible = True
        if gesture.source.role == "renderBox":
            bar = self.viewer.find_thumbnails_bar(gesture.item_id)
            if bar is not None:
                bar.set_child_visible(gesture.item_id, False)

    def on_before_stop(self, gesture: DragGesture, target: PaneContainer) -> DropOutcome:
        for bar in self.viewer.thumbnails_bars.values():
            bar.overflow_visible = False

        source = gesture.source
        record_id = gesture.item_id
        print(f"[DRAG] {source.role} item {record_id} dropped on {target.role} ({gesture.state})")

        if source.role == "componentRow":
            component = self.viewer.find_component(record_id)
            if gesture.state != "droppedOnSelf" or component is None:
                return "cancelled"
            self.viewer.move_component(component, gesture.travel[0])
            return "moved"

        if gesture.state == "droppedOnSelf":
            return "moved"

        if gesture.state == "droppedOnTrash":
            record = self.viewer.registry.get(record_id)
            if record is not None and record.thumbnails_bar_id is not None:
                self.viewer.remove_batch(record.thumbnails_bar_id)
            return "cancelled"

        if source.role == "thumbnailsBar" and target.role == "renderBox":
            if self.viewer.renderers_box.is_full():
                self.viewer.notify_user(
                    f"Reached maximum number of renders allowed: {self.viewer.renderers_box.capacity}")
                return "rejected"
            self.viewer.activate(record_id)
            return "cancelled"

        if source.role == "renderBox" and target.role == "thumbnailsBar":
            self.viewer.deactivate(record_id)
            return "cancelled"

        return "cancelled"
