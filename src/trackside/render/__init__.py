"""Render-side smoothing between polled targets."""

from trackside.render.interpolator import RenderInterpolator, RenderPose, shortest_angle_diff, wrap_angle

__all__ = ["RenderInterpolator", "RenderPose", "shortest_angle_diff", "wrap_angle"]
