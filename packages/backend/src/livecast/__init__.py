"""Livecast — live campaign events and scheduled components.

Operators push product, poll and contest events to viewers connected over
per-campaign WebSocket rooms, and manage a library of UI components that
activate and deactivate on a schedule.
"""

__version__ = "0.1.0"
