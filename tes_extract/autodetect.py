"""
Game install-path autodetection through the Windows registry
"""

import logging
import sys
from pathlib import Path, PureWindowsPath

from tes_extract import constants
from tes_extract.exceptions import UnsupportedFeatureError


logger = logging.getLogger("tes_extract.autodetect")

SUPPORTED_GAMES = sorted(constants.GAME_REGISTRY_KEYS)


def registry_subkey(game: str) -> str:
    """
    Get the registry key holding a game's install path.

    Args:
        game: Game name (one of SUPPORTED_GAMES, case-insensitive)

    Returns:
        Key below HKEY_LOCAL_MACHINE
    """
    subkey = constants.GAME_REGISTRY_KEYS.get(game.lower())
    if subkey is None:
        raise UnsupportedFeatureError(f"Autodetect is not supported for game {game!r}")
    return str(PureWindowsPath(constants.REGISTRY_ROOT) / subkey)


def autodetect_data_path(game: str) -> Path:
    """
    Find a game's Data folder from its registry entry.

    Args:
        game: Game name (one of SUPPORTED_GAMES, case-insensitive)

    Returns:
        Path to the Data folder
    """
    subkey = registry_subkey(game)

    if sys.platform != "win32":
        raise UnsupportedFeatureError("Data path autodetection is not supported for your platform")

    import winreg

    logger.debug(f"Reading HKLM\\{subkey}")
    try:
        with winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, subkey) as key:
            installed_path, _value_type = winreg.QueryValueEx(key, constants.REGISTRY_INSTALL_VALUE)
    except OSError as e:
        raise RuntimeError(f"Unable to detect the data path for {game}: registry key {subkey!r}: {e}") from e

    return Path(installed_path) / constants.DATA_FOLDER
