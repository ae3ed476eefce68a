"""
Layout Manager

This module positions the viewer's top-level components (thumbnails bars,
renderers box, toolbar, trash) in one horizontal row. Components up to and
including the renderers box are pinned by their left edge, the remaining ones
by their right edge, so thumbnails bars can pile up on either side while the
renderers box stays central and absorbs the remaining width.

Inputs:
    - Ordered list of components
    - Row width and gutter

Outputs:
    - Component left/right edges and the renderers box width

Requirements:
    - gui.pane_container for the component type
"""

from typing import List, Optional

from gui.pane_container import PaneContainer


class LayoutManager:
    """
    Two-pass edge layout of the viewer's component row.
    """

    def __init__(self, total_width: float = 1200, gutter: float = 5):
        """
        Initialize the layout manager.

        Args:
            total_width: Width of the row in pixels
            gutter: Gap between neighbouring components
        """
        self.total_width = total_width
        self.gutter = gutter

    def layout(self, components: List[PaneContainer]) -> None:
        """
        Assign edges to every component.

        Left pass from the first component through the renderers box
        (right edge auto); right pass over the remaining components in reverse
        (left edge auto). The renderers box width is what is left between its
        neighbours.

        Args:
            components: Components in display order
        """
        render_index = self._render_box_index(components)
        last_left = len(components) - 1 if render_index is None else render_index

        left = 0.0
        for component in components[:last_left + 1]:
            component.set_geometry(left, None)
            left += component.width + self.gutter

        right = 0.0
        for component in reversed(components[last_left + 1:]):
            component.set_geometry(None, right)
            right += component.width + self.gutter

        if render_index is not None:
            render_box = components[render_index]
            width = max(0.0, self.total_width - render_box.left - right)
            render_box.set_geometry(render_box.left, None, width)

    def move_component(self, components: List[PaneContainer], component: PaneContainer,
                       delta_x: float) -> List[PaneContainer]:
        """
        Move a component to the leading or trailing end of the row and relayout.

        Args:
            components: Components in display order (modified in place)
            component: Component that was dragged
            delta_x: Horizontal drag distance; negative moves it to the front

        Returns:
            The reordered list
        """
        if component not in components:
            return components
        components.remove(component)
        if delta_x < 0:
            components.insert(0, component)
        else:
            components.append(component)
        self.layout(components)
        return components

    @staticmethod
    def _render_box_index(components: List[PaneContainer]) -> Optional[int]:
        for index, component in enumerate(components):
            if component.role == "renderBox":
                return index
        return None
