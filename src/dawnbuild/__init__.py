"""dawnbuild: builds the Dawn WebGPU library from pinned sources."""

__version__ = "0.1.0"
