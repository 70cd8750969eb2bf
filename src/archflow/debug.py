"""
Debug utilities for archflow.

This module provides tools for checking and eyeballing layout results.

Key Components:
- LayoutInspector: Geometric checks over a LayoutResult (routes crossing
  boxes, connections sharing a lane)
- PreviewRenderer: Rasterizes boxes and routes with Pillow

Usage:
    >>> result = DiagramEngine().layout(diagram)
    >>> inspector = LayoutInspector(result)
    >>> inspector.find_collisions()
    []
    >>> PreviewRenderer().save(result, "preview.png")
"""

import os
from typing import List, Optional, Tuple

from PIL import Image, ImageDraw, ImageFont

from .engine import LayoutResult
from .models import NodeType, Point
from .router import PathRouter, RoutedConnection


class LayoutInspector:
    """
    Geometric checks over a finished layout.

    Args:
        result: Result of DiagramEngine.layout()
    """

    def __init__(self, result: LayoutResult):
        self.result = result
        self._router = PathRouter(result.node_map)

    def find_collisions(self) -> List[Tuple[int, str]]:
        """
        Find routes that pass through a node they do not connect.

        Returns:
            (connection index, node id) pairs
        """
        hits = []
        for route in self.result.routes:
            if route.curved:
                continue
            obstacles = self._router.obstacles_for(route.source, route.target)
            for node_id in self._router.collisions(route.waypoints, obstacles):
                hits.append((route.index, node_id))
        return hits

    def find_shared_lanes(self) -> List[Tuple[int, int]]:
        """
        Find pairs of connections with overlapping collinear segments.

        Segments attached to the same anchor point are ignored, since
        connections sharing an endpoint node legitimately meet there.

        Returns:
            (connection index, connection index) pairs, lower index first
        """
        segments: List[Tuple[int, Point, Point]] = []
        for route in self.result.routes:
            if route.curved:
                continue
            for a, b in route.segments:
                segments.append((route.index, a, b))

        shared = set()
        for i, (idx1, a1, b1) in enumerate(segments):
            for idx2, a2, b2 in segments[i + 1:]:
                if idx1 == idx2 or {a1, b1} & {a2, b2}:
                    continue
                if _collinear_overlap(a1, b1, a2, b2):
                    shared.add((min(idx1, idx2), max(idx1, idx2)))
        return sorted(shared)

    def describe_route(self, route: RoutedConnection) -> str:
        """One-line description of a route."""
        points = " -> ".join(f"({x:g},{y:g})" for x, y in route.waypoints)
        return (
            f"#{route.index} {route.source} -> {route.target} "
            f"[{route.exit_side.value}/{route.entry_side.value} "
            f"{route.connector.value}] {points}"
        )

    def report(self) -> str:
        """Multi-line report of all routes and problems found."""
        lines = [self.describe_route(r) for r in self.result.routes]
        collisions = self.find_collisions()
        shared = self.find_shared_lanes()
        lines.append("")
        lines.append(f"Collisions: {len(collisions)}")
        for index, node_id in collisions:
            lines.append(f"  #{index} crosses {node_id}")
        lines.append(f"Shared lanes: {len(shared)}")
        for first, second in shared:
            lines.append(f"  #{first} and #{second}")
        return "\n".join(lines)


def _collinear_overlap(a1: Point, b1: Point, a2: Point, b2: Point) -> bool:
    if a1[1] == b1[1] == a2[1] == b2[1]:
        lo1, hi1 = sorted((a1[0], b1[0]))
        lo2, hi2 = sorted((a2[0], b2[0]))
        return lo1 < hi2 and lo2 < hi1
    if a1[0] == b1[0] == a2[0] == b2[0]:
        lo1, hi1 = sorted((a1[1], b1[1]))
        lo2, hi2 = sorted((a2[1], b2[1]))
        return lo1 < hi2 and lo2 < hi1
    return False


class PreviewRenderer:
    """Renders a LayoutResult as a PNG preview for visual debugging."""

    def __init__(
        self,
        scale: int = 1,
        margin: int = 40,
        font_size: int = 11,
        font_path: Optional[str] = None,
        show_bounds: bool = True,
    ):
        self.scale = scale
        self.margin = margin
        self.font_size = font_size
        self.font_path = font_path
        self.show_bounds = show_bounds

        # Colors
        self.bg_color = (255, 255, 255)
        self.box_outline = (0, 0, 0)
        self.group_outline = (120, 120, 200)
        self.bounds_outline = (200, 120, 120)
        self.text_color = (0, 0, 0)
        self.line_color = (40, 40, 40)
        self.collision_color = (220, 40, 40)

        self.font = None

    def _get_font(self) -> ImageFont.ImageFont:
        """Get a font for rendering labels."""
        if self.font is not None:
            return self.font

        font_size = self.font_size * self.scale
        font_options = [
            "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
            "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
            "/usr/share/fonts/truetype/freefont/FreeSans.ttf",
        ]
        if self.font_path:
            font_options.insert(0, self.font_path)

        for path in font_options:
            if os.path.exists(path):
                try:
                    self.font = ImageFont.truetype(path, font_size)
                    return self.font
                except OSError:
                    continue

        # Fallback to default font
        self.font = ImageFont.load_default()
        return self.font

    def _extent(self, result: LayoutResult) -> Tuple[float, float, float, float]:
        xs: List[float] = []
        ys: List[float] = []
        for node in result.node_map.values():
            xs.extend([node.x, node.x + node.width])
            ys.extend([node.y, node.y + node.height])
        for route in result.routes:
            for x, y in route.waypoints:
                xs.append(x)
                ys.append(y)
        if not xs:
            return 0, 0, 0, 0
        return min(xs), min(ys), max(xs), max(ys)

    def render(self, result: LayoutResult) -> Image.Image:
        """
        Draw every node box, its anchoring bounds and every route.

        Routes that still cross a box are drawn in the collision color.
        """
        min_x, min_y, max_x, max_y = self._extent(result)
        width = int((max_x - min_x + 2 * self.margin) * self.scale) + 1
        height = int((max_y - min_y + 2 * self.margin) * self.scale) + 1

        def to_px(x: float, y: float) -> Tuple[float, float]:
            return (
                (x - min_x + self.margin) * self.scale,
                (y - min_y + self.margin) * self.scale,
            )

        img = Image.new("RGB", (max(width, 1), max(height, 1)), self.bg_color)
        draw = ImageDraw.Draw(img)
        font = self._get_font()

        # Groups first so their children draw on top
        nodes = sorted(
            result.node_map.values(), key=lambda n: n.type != NodeType.GROUP
        )
        for node in nodes:
            outline = self.group_outline if node.type == NodeType.GROUP else self.box_outline
            draw.rectangle(
                [to_px(node.x, node.y), to_px(node.x + node.width, node.y + node.height)],
                outline=outline,
                width=self.scale,
            )
            if self.show_bounds and node.type != NodeType.GROUP:
                b = node.bounds
                draw.rectangle(
                    [to_px(b.left, b.top), to_px(b.right, b.bottom)],
                    outline=self.bounds_outline,
                )
            draw.text(
                to_px(node.x + 2, node.y + 2), node.label or node.id, fill=self.text_color, font=font
            )

        for route in result.routes:
            color = self.collision_color if route.collisions else self.line_color
            points = [to_px(x, y) for x, y in route.waypoints]
            if route.curved:
                points = [to_px(x, y) for x, y in _bezier(route.waypoints)]
            if len(points) < 2:
                continue
            draw.line(points, fill=color, width=2 * self.scale)
            self._draw_arrowhead(draw, points[-2], points[-1], color)

        return img

    def _draw_arrowhead(self, draw: ImageDraw.ImageDraw, tail: Point, tip: Point, color) -> None:
        size = 6 * self.scale
        dx, dy = tip[0] - tail[0], tip[1] - tail[1]
        length = max(abs(dx) + abs(dy), 1e-9)
        ux, uy = dx / length, dy / length
        left = (tip[0] - ux * size - uy * size / 2, tip[1] - uy * size + ux * size / 2)
        right = (tip[0] - ux * size + uy * size / 2, tip[1] - uy * size - ux * size / 2)
        draw.polygon([tip, left, right], fill=color)

    def save(self, result: LayoutResult, filename: str) -> None:
        """Render and write a PNG file."""
        self.render(result).save(filename, "PNG")


def _bezier(points: List[Point], steps: int = 24) -> List[Point]:
    """Sample a cubic Bezier curve given start, two controls and end."""
    (x0, y0), (x1, y1), (x2, y2), (x3, y3) = points
    samples = []
    for i in range(steps + 1):
        t = i / steps
        mt = 1 - t
        samples.append(
            (
                mt ** 3 * x0 + 3 * mt ** 2 * t * x1 + 3 * mt * t ** 2 * x2 + t ** 3 * x3,
                mt ** 3 * y0 + 3 * mt ** 2 * t * y1 + 3 * mt * t ** 2 * y2 + t ** 3 * y3,
            )
        )
    return samples
