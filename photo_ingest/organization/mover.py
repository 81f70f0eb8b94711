import shutil
import logging
from pathlib import Path

from ..exceptions import FileOperationError


class FileMover:
    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run

    def move(self, src: Path, dest: Path) -> Path:
        """
        Moves src to dest, creating parent folders. Refuses to overwrite.
        Raises FileOperationError; the source is left in place on failure.
        """
        if self.dry_run:
            logging.info(f"[DRY RUN] Move {src} -> {dest}")
            return dest

        if dest.exists():
            raise FileOperationError(f"move {src} -> {dest}: destination exists")

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(src), str(dest))
        except OSError as e:
            raise FileOperationError(f"move {src} -> {dest}: {e}") from e

        logging.debug(f"move {src} -> {dest}")
        return dest
