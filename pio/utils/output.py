"""Writing optimized images to their destination."""

import os
import sys
import tempfile
from pathlib import Path
from typing import Union


def write_atomic(path: Union[str, Path], data: bytes) -> None:
    """Write bytes so readers never observe a partial file.

    Data goes to a temporary file in the destination directory, is flushed to
    disk and then renamed over the destination.
    """
    path = Path(path)
    directory = path.parent if str(path.parent) else Path(".")
    fd, tmp_path = tempfile.mkstemp(prefix=".pio-", suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, "wb") as tmp_file:
            tmp_file.write(data)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def write_output(destination: Union[str, Path], data: bytes) -> None:
    """Write to a file path, or to stdout when the destination is ``-``."""
    if str(destination) == "-":
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()
        return
    write_atomic(destination, data)
