"""Geospatial layer: geodetic projection and track-locking."""

from trackside.geo.projection import ORIGIN, GeoProjector, GeoReference, LocalPoint
from trackside.geo.track import TrackLocation, TrackLocator, TrackModel, heading_of, project_onto_segment

__all__ = [
    "ORIGIN",
    "GeoProjector",
    "GeoReference",
    "LocalPoint",
    "TrackLocation",
    "TrackLocator",
    "TrackModel",
    "heading_of",
    "project_onto_segment",
]
