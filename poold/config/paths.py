"""Filesystem path helpers used by the configuration layer."""

import os
import sys


def app_data_dir(app_name: str, roaming: bool = False) -> str:
    """
    Return the operating system specific data directory for an application.

    POSIX systems use ``~/.<app>``, macOS uses
    ``~/Library/Application Support/<App>`` and Windows uses
    ``%LOCALAPPDATA%\\<App>`` (``%APPDATA%`` when ``roaming`` is set).
    """
    if not app_name or app_name == ".":
        return "."

    app_name = app_name.lstrip(".")
    app_name_upper = app_name[:1].upper() + app_name[1:]
    app_name_lower = app_name[:1].lower() + app_name[1:]

    home_dir = os.path.expanduser("~")
    if home_dir == "~":
        home_dir = ""

    if sys.platform.startswith("win"):
        app_data = os.environ.get("LOCALAPPDATA")
        if roaming or not app_data:
            app_data = os.environ.get("APPDATA")
        if app_data:
            return os.path.join(app_data, app_name_upper)
    elif sys.platform == "darwin":
        if home_dir:
            return os.path.join(
                home_dir, "Library", "Application Support", app_name_upper
            )
    elif home_dir:
        return os.path.join(home_dir, f".{app_name_lower}")

    return "."


def clean_and_expand_path(path: str) -> str:
    """
    Expand ``~`` and environment variables in ``path`` and return it as a
    cleaned absolute path. An empty path stays empty.
    """
    if not path:
        return ""

    path = os.path.expandvars(os.path.expanduser(path))
    return os.path.abspath(path)
