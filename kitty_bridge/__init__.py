"""Kitty graphics bridge for web-hosted terminals.

Rewrites Kitty graphics commands in PTY output so a terminal renderer
without access to the host filesystem can display them.
"""

from .assembler import BridgeState
from .bridge import (
    BridgeOptions,
    KittyGraphicsBridge,
    create_bridge,
    rewrite_file_media_to_direct,
)
from .cache import ImageSizeCache
from .config import BridgeSettings
from .png import ImageSize

__all__ = [
    'BridgeOptions',
    'BridgeSettings',
    'BridgeState',
    'ImageSize',
    'ImageSizeCache',
    'KittyGraphicsBridge',
    'create_bridge',
    'rewrite_file_media_to_direct',
]
