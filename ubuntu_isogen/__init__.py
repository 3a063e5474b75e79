"""Ubuntu ISO Generator - autoinstall-enabled Ubuntu installation media.

This package extracts an official Ubuntu live-server ISO, embeds an
autoinstall (cloud-init NoCloud) configuration, patches GRUB and re-masters
a hybrid BIOS/UEFI bootable ISO with xorriso.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
