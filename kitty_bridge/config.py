"""Environment-backed bridge settings.

Variables (all optional):
    KITTY_BRIDGE_TRACE              1 = trace every rewritten command
    KITTY_BRIDGE_DEBUG              1 = count rewrites at the call site
    KITTY_BRIDGE_MAX_DIMENSION      pixel limit for clamps and resizing
    KITTY_BRIDGE_IMAGE_CACHE_SIZE   capacity of the image-size cache
    KITTY_BRIDGE_RESIZER            pillow | sips | off
    KITTY_BRIDGE_DELETE_TEMP_FILES  1 = delete t=t files after reading

The server loads a ``.env`` file with python-dotenv before calling
:meth:`BridgeSettings.from_env`, so any of these can live there.
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .bridge import BridgeOptions, ReadFileFn
from .cache import DEFAULT_IMAGE_CACHE_SIZE
from .resize import select_resizer
from .rewriter import DEFAULT_MAX_DIMENSION

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("1", "true", "yes", "on")


def _env_flag(env: Mapping[str, str], name: str) -> bool:
    return env.get(name, "").strip().lower() in _TRUE_VALUES


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer", name, raw)
        return default
    if value < 1:
        logger.warning("Ignoring %s=%r: must be positive", name, raw)
        return default
    return value


@dataclass
class BridgeSettings:
    """Bridge configuration as read from the environment.

    Attributes:
        trace: Write one trace line per rewritten command.
        debug: Count and log rewrites at the call site (the PTY server).
        max_dimension: Pixel limit for size clamps and PNG downsizing.
        image_cache_size: Number of image ids whose size is remembered.
        resizer: Name of the resize capability (pillow, sips, off).
        delete_temp_files: Delete ``t=t`` files after a successful read.
    """
    trace: bool = False
    debug: bool = False
    max_dimension: int = DEFAULT_MAX_DIMENSION
    image_cache_size: int = DEFAULT_IMAGE_CACHE_SIZE
    resizer: str = "pillow"
    delete_temp_files: bool = False

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "BridgeSettings":
        env = os.environ if env is None else env
        return cls(
            trace=_env_flag(env, "KITTY_BRIDGE_TRACE"),
            debug=_env_flag(env, "KITTY_BRIDGE_DEBUG"),
            max_dimension=_env_int(env, "KITTY_BRIDGE_MAX_DIMENSION", DEFAULT_MAX_DIMENSION),
            image_cache_size=_env_int(
                env, "KITTY_BRIDGE_IMAGE_CACHE_SIZE", DEFAULT_IMAGE_CACHE_SIZE
            ),
            resizer=env.get("KITTY_BRIDGE_RESIZER", "pillow").strip() or "pillow",
            delete_temp_files=_env_flag(env, "KITTY_BRIDGE_DELETE_TEMP_FILES"),
        )

    def to_options(self, read_file: Optional[ReadFileFn] = None) -> BridgeOptions:
        return BridgeOptions(
            read_file=read_file,
            trace=self.trace,
            resize_png=select_resizer(self.resizer),
            max_dimension=self.max_dimension,
            image_cache_size=self.image_cache_size,
            delete_temp_files=self.delete_temp_files,
        )
