"""Bootable ISO generation module.

This module handles:
- xorriso detection and command composition
- Build option validation
- Autoinstall document generation
- GRUB patching and ISO re-mastering
"""

from ubuntu_isogen.iso.autoinstall import AutoinstallGenerator
from ubuntu_isogen.iso.builder import BuildResult, ImageBuilder
from ubuntu_isogen.iso.options import ImageOptions
from ubuntu_isogen.iso.tools import ToolDetector

__all__ = [
    "AutoinstallGenerator",
    "BuildResult",
    "ImageBuilder",
    "ImageOptions",
    "ToolDetector",
]
