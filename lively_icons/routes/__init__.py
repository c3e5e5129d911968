"""FastAPI routers. Each module exposes ``router``; ``main`` mounts them under ``/api``."""
