"""Source ISO module.

This module handles:
- The registry of official Ubuntu live-server ISOs
- Downloading and verifying source ISOs
"""

from ubuntu_isogen.images.registry import SourceImage, get_source_image, list_source_images

__all__ = ["SourceImage", "get_source_image", "list_source_images"]
