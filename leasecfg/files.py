"""
leasecfg/files.py - Replacing configuration files
"""

from contextlib import suppress
import os
import shutil
import tempfile


def replace_file(path: str, content: str, mode: int = 0o644) -> None:
    """
    Write content to a temporary file in the directory of path and move it
    over path, so readers never see a partly written file.

    Raises ``OSError`` on failure, leaving path untouched.
    """
    temp = tempfile.NamedTemporaryFile(
        delete=False, mode="w", dir=os.path.dirname(path) or ".", prefix=".leasecfg-"
    )
    try:
        with temp:
            temp.write(content)
            temp.flush()
        os.chmod(temp.name, mode)
        shutil.move(temp.name, path)
    except OSError:
        with suppress(FileNotFoundError):
            os.unlink(temp.name)
        raise
