"""Path helpers for locating Caravan configuration and ephemeral state."""

from pathlib import Path

from platformdirs import user_data_dir

CARAVAN_APP_NAME = "caravan"
TOWN_CONFIG_DIRNAME = ".caravan"
TOWN_CONFIG_FILENAME = "config.json"
INSTALLED_CONFIG_FILENAME = "config.user.json"
WISP_DIRNAME = ".caravan-wisp"
HOOK_FILE_PREFIX = "hook-"
HOOK_FILE_SUFFIX = ".json"


def caravan_data_dir() -> Path:
    """Return the base Caravan data directory.

    Returns:
        Path to the user data directory for Caravan.

    Example:
        >>> isinstance(caravan_data_dir(), Path)
        True
    """
    return Path(user_data_dir(CARAVAN_APP_NAME))


def installed_config_path() -> Path:
    """Return the path to the installed user defaults config file."""
    return caravan_data_dir() / INSTALLED_CONFIG_FILENAME


def town_config_path(town_root: Path) -> Path:
    """Return the town configuration file path.

    Example:
        >>> town_config_path(Path("/town")).as_posix()
        '/town/.caravan/config.json'
    """
    return town_root / TOWN_CONFIG_DIRNAME / TOWN_CONFIG_FILENAME


def wisp_dir(workspace_root: Path) -> Path:
    """Return the ephemeral hand-off directory for a workspace.

    Example:
        >>> wisp_dir(Path("/town/gastown/crew/joe")).name
        '.caravan-wisp'
    """
    return workspace_root / WISP_DIRNAME


def hook_filename(hook_key: str) -> str:
    """Return the hook file name for an identity key.

    Example:
        >>> hook_filename("gastown-crew-joe")
        'hook-gastown-crew-joe.json'
    """
    return f"{HOOK_FILE_PREFIX}{hook_key}{HOOK_FILE_SUFFIX}"


def find_town_root(start: Path) -> Path | None:
    """Walk up from ``start`` to the directory holding the town config."""
    current = start.resolve()
    for candidate in (current, *current.parents):
        if town_config_path(candidate).is_file():
            return candidate
    return None
