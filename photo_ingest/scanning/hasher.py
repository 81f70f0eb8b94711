import hashlib
from pathlib import Path
from typing import Union

from .. import config
from ..exceptions import FileHashError


class FileHasher:
    def __init__(self, chunk_size: int = config.HASH_CHUNK_SIZE):
        self.chunk_size = chunk_size

    def compute_hash(self, path: Union[str, Path]) -> str:
        """
        Streams the file through SHA-256 and returns the hex digest.

        Hash equality is only a candidate filter; identity is always
        confirmed with a byte comparison (see compare.files_equal).
        """
        h = hashlib.sha256()
        try:
            with open(path, 'rb') as f:
                while chunk := f.read(self.chunk_size):
                    h.update(chunk)
        except OSError as e:
            raise FileHashError(f"hash {path}: {e}") from e
        return h.hexdigest()
