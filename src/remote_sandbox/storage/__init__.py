"""
Persistent volume management.
"""

from .volumes import VolumeHandle, Volumes

__all__ = [
    "VolumeHandle",
    "Volumes",
]
