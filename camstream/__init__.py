"""Per-camera live stream session manager."""
