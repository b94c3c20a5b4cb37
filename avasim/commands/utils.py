"""
Shared helpers used across avasim commands.
"""

import os
import shutil
import stat
from pathlib import Path
from typing import Union

from rich.console import Console

console = Console()


def copy_file(src: Union[str, Path], dst: Union[str, Path], executable: bool = False):
    """Copy a file, optionally marking the destination executable."""
    shutil.copyfile(src, dst)
    if executable:
        mode = os.stat(dst).st_mode
        os.chmod(dst, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


def ensure_dir(path: Union[str, Path]) -> Path:
    """Create a directory (and parents) if needed and return it as a Path."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path
