"""Message type constants for everything sent over viewer WebSockets.

Learn: Centralizing the ``type`` strings prevents typos between the
producers (event service, scheduler, component service) and the viewer apps
that switch on them.
"""

# ─── Live events (operator-triggered) ───────────────────

PRODUCT = "product"
POLL = "poll"
CONTEST = "contest"

# ─── Control messages ───────────────────────────────────

CLIENT_COUNT = "client_count"
PONG = "pong"

# ─── Component lifecycle ────────────────────────────────

COMPONENT_STATUS_CHANGED = "component_status_changed"
COMPONENT_CONFIG_UPDATED = "component_config_updated"
