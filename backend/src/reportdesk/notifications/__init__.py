"""Per-user notifications, role broadcasts and the live socket hub."""
