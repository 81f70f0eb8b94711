"""
Byte-exact file comparison. This is the source of truth for identity.
"""
import os
from pathlib import Path
from typing import Union

from .. import config
from ..exceptions import FileCompareError

PathLike = Union[str, Path]


def files_equal(first: PathLike, second: PathLike,
                chunk_size: int = config.COMPARE_CHUNK_SIZE) -> bool:
    """
    Returns True when both files hold exactly the same bytes.
    Sizes are compared first so unequal files are rejected without reading them.
    """
    try:
        if os.stat(first).st_size != os.stat(second).st_size:
            return False

        with open(first, 'rb') as f1, open(second, 'rb') as f2:
            while True:
                b1 = f1.read(chunk_size)
                b2 = f2.read(chunk_size)
                if b1 != b2:
                    return False
                if not b1:
                    return True
    except OSError as e:
        raise FileCompareError(f"compare {first}, {second}: {e}") from e


def group_equal(*paths: PathLike) -> bool:
    """Compares every path against the first one. Empty or single input is equal."""
    if len(paths) <= 1:
        return True
    head = paths[0]
    return all(files_equal(head, other) for other in paths[1:])
