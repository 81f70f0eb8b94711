import pytest
from datetime import datetime
from pathlib import Path

from PIL import Image, ExifTags

from photo_ingest.metadata.extract import Decoder, DecodedMetadata, MetadataExtractor
from photo_ingest.models import StorageLayout

DEFAULT_TIME = datetime(2024, 1, 2, 10, 0, 0)


class FakeDecoder(Decoder):
    """Returns fixed metadata; per-file overrides are keyed by file name."""
    name = "fake"

    def __init__(self, make="Canon", model="EOS", capture_time=DEFAULT_TIME, overrides=None):
        self.default = DecodedMetadata(make, model, capture_time)
        self.overrides = overrides or {}

    def decode(self, path: Path) -> DecodedMetadata:
        return self.overrides.get(path.name, self.default)


@pytest.fixture
def fake_decoder():
    return FakeDecoder()


@pytest.fixture
def extractor(fake_decoder):
    """MetadataExtractor that never touches a real decoder."""
    return MetadataExtractor({'image': (fake_decoder,), 'video': (fake_decoder,)})


@pytest.fixture
def layout(tmp_path):
    """Storage root with empty Incoming and Sorted folders."""
    lay = StorageLayout(tmp_path / "library")
    lay.incoming.mkdir(parents=True)
    lay.sorted.mkdir(parents=True)
    return lay


def write_file(path: Path, data: bytes) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


def make_jpeg(path: Path, make=None, model=None, taken=None, color=(200, 10, 10)) -> Path:
    """Writes a small real JPEG, with base IFD EXIF tags when given."""
    path.parent.mkdir(parents=True, exist_ok=True)
    img = Image.new("RGB", (16, 16), color)
    exif = Image.Exif()
    if make:
        exif[ExifTags.Base.Make] = make
    if model:
        exif[ExifTags.Base.Model] = model
    if taken:
        exif[ExifTags.Base.DateTime] = taken.strftime("%Y:%m:%d %H:%M:%S")
    if len(exif):
        img.save(path, "JPEG", exif=exif)
    else:
        img.save(path, "JPEG")
    return path
