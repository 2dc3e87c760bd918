"""
Live stream domain logic.

Includes:
- option_set / stream_options: transcoder flags and command assembly.
- stream_session: per-camera process lifecycle.
- output_relay: stdout to broadcast channel, stderr to log.
- stream_domain: registry of sessions keyed by camera name.
"""
