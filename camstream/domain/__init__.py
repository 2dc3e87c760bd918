"""
Domain layer containing core business logic and domain services.

Submodules:
- stream: Per-camera transcoder sessions (options, lifecycle, output relay).
"""
