"""arduino-tools — compile, upload, monitor and manage libraries through arduino-cli."""

__version__ = "0.1.0"
