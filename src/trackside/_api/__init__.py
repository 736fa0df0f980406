"""Endpoint modules for the telemetry backend.

Each module wraps one backend resource and decodes its payload into the
typed models of :mod:`trackside.models` at the transport boundary.
"""
