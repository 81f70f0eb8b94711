import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple, Dict, Any, Sequence

import exifread
from PIL import Image, ExifTags
from pymediainfo import MediaInfo

from .. import config
from ..exceptions import NotMediaError, MetadataDecodeError


@dataclass
class DecodedMetadata:
    make: Optional[str] = None
    model: Optional[str] = None
    capture_time: Optional[datetime] = None

    def is_complete(self) -> bool:
        return bool(self.make and self.model and self.capture_time)

    def fill_from(self, other: "DecodedMetadata"):
        """Takes fields from `other` that are still missing here."""
        self.make = self.make or other.make
        self.model = self.model or other.model
        self.capture_time = self.capture_time or other.capture_time


class Decoder:
    """
    Contract for metadata decoders: decode(path) -> DecodedMetadata.
    A decoder that cannot read a file raises MetadataDecodeError.
    """
    name = "decoder"

    def decode(self, path: Path) -> DecodedMetadata:
        raise NotImplementedError


class ExifReadDecoder(Decoder):
    """Images via 'exifread' (fast, Python-native)."""
    name = "exifread"

    def decode(self, path: Path) -> DecodedMetadata:
        try:
            with path.open('rb') as f:
                # details=False speeds up processing significantly
                tags = exifread.process_file(f, details=False)
        except Exception as e:
            raise MetadataDecodeError(f"exifread {path}: {e}") from e

        if not tags:
            raise MetadataDecodeError(f"exifread {path}: no EXIF tags")

        return DecodedMetadata(
            make=clean_label(tags.get(config.MAKE_TAG)),
            model=clean_label(tags.get(config.MODEL_TAG)),
            capture_time=parse_exif_date(tags),
        )


class PillowExifDecoder(Decoder):
    """Fallback for images exifread cannot handle (Pillow getexif)."""
    name = "pillow"

    def decode(self, path: Path) -> DecodedMetadata:
        try:
            with Image.open(path) as im:
                exif = im.getexif()
                sub_ifd = exif.get_ifd(ExifTags.IFD.Exif)
        except Exception as e:
            raise MetadataDecodeError(f"pillow {path}: {e}") from e

        if not exif:
            raise MetadataDecodeError(f"pillow {path}: no EXIF tags")

        capture = None
        for raw in (sub_ifd.get(ExifTags.Base.DateTimeOriginal),
                    sub_ifd.get(ExifTags.Base.DateTimeDigitized),
                    exif.get(ExifTags.Base.DateTime)):
            capture = parse_flexible_date(raw)
            if capture:
                break

        return DecodedMetadata(
            make=clean_label(exif.get(ExifTags.Base.Make)),
            model=clean_label(exif.get(ExifTags.Base.Model)),
            capture_time=capture,
        )


class MediaInfoDecoder(Decoder):
    """Videos via 'pymediainfo'."""
    name = "mediainfo"

    # Priority: Original -> Encoded -> Tagged
    DATE_FIELDS = ["recorded_date", "encoded_date", "tagged_date"]
    MAKE_FIELDS = ["make", "com_apple_quicktime_make", "manufacturer"]
    MODEL_FIELDS = ["model", "com_apple_quicktime_model", "device_model"]

    def decode(self, path: Path) -> DecodedMetadata:
        try:
            mi = MediaInfo.parse(str(path))
        except Exception as e:
            raise MetadataDecodeError(f"mediainfo {path}: {e}") from e

        data = DecodedMetadata()
        for track in mi.tracks:
            if track.track_type != "General":
                continue
            for attr in self.DATE_FIELDS:
                dt = parse_flexible_date(getattr(track, attr, None))
                if dt:
                    data.capture_time = dt
                    break
            data.make = self._first(track, self.MAKE_FIELDS)
            data.model = self._first(track, self.MODEL_FIELDS)
        return data

    @staticmethod
    def _first(track, fields) -> Optional[str]:
        for attr in fields:
            val = clean_label(getattr(track, attr, None))
            if val:
                return val
        return None


DEFAULT_DECODERS: Dict[str, Tuple[Decoder, ...]] = {
    'image': (ExifReadDecoder(), PillowExifDecoder()),
    'video': (MediaInfoDecoder(),),
}


class MetadataExtractor:
    """
    Derives (camera label, capture timestamp) for a media file.

    Missing or unreadable metadata is expected and never an error:
    the camera falls back to "Unknown Unknown" (per missing part) and the
    timestamp to the file modification time. Any fault inside a decoder is
    contained here, so one bad file cannot abort a batch.
    """

    def __init__(self, decoders: Optional[Dict[str, Sequence[Decoder]]] = None):
        self.decoders = DEFAULT_DECODERS if decoders is None else decoders

    def classify(self, path: Path) -> str:
        """Returns the media type of the file or raises NotMediaError."""
        ext = path.suffix.lower()
        ftype = config.EXT_TO_TYPE.get(ext)
        # macOS resource forks share the extension of the real file
        if ftype is None or path.name.startswith("._"):
            raise NotMediaError(f"not a media file: {path}")
        return ftype

    def extract(self, path: Path) -> Tuple[str, datetime]:
        ftype = self.classify(path)
        mtime = datetime.fromtimestamp(path.stat().st_mtime)

        meta = self._decode(path, ftype)
        if not meta.is_complete():
            logging.debug(f"Incomplete metadata for {path}, using fallback for missing fields")

        make = meta.make or config.UNKNOWN
        model = meta.model or config.UNKNOWN
        return f"{make} {model}", meta.capture_time or mtime

    def _decode(self, path: Path, ftype: str) -> DecodedMetadata:
        merged = DecodedMetadata()
        for decoder in self.decoders.get(ftype, ()):
            try:
                meta = decoder.decode(path)
            except MetadataDecodeError as e:
                logging.debug(f"{decoder.name} failed: {e}")
                continue
            except Exception as e:
                logging.warning(f"{decoder.name} crashed on {path}: {e!r}")
                continue

            merged.fill_from(meta)
            if merged.is_complete():
                break
        return merged


# --- Parsing Helpers ---

def clean_label(value: Any) -> Optional[str]:
    """Turns a raw tag value into a trimmed, unquoted label (or None)."""
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode('utf-8', errors='ignore')
    s = str(value).replace('\x00', '').strip()
    if len(s) >= 2 and s[0] == s[-1] and s[0] in ('"', "'"):
        s = s[1:-1].strip()
    return s or None


def parse_exif_date(tags) -> Optional[datetime]:
    """Parses the first usable EXIF date tag from exifread output."""
    for tag in config.DATE_TAGS:
        if tag in tags:
            dt = parse_flexible_date(str(tags[tag]))
            if dt:
                return dt
    return None


def parse_flexible_date(dt_str: Any) -> Optional[datetime]:
    """
    Handles various date formats (ISO, UTC suffixes, EXIF colons).
    Returns a naive datetime object.
    """
    if not dt_str:
        return None

    clean = str(dt_str).replace("UTC", "").replace('\x00', '').strip()

    # 1. Try ISO format (e.g. 2020-01-01T12:00:00)
    try:
        dt = datetime.fromisoformat(clean)
        return dt.replace(tzinfo=None)
    except ValueError:
        pass

    # 2. Try Standard EXIF style "YYYY:MM:DD HH:MM:SS"
    try:
        clean_exif = clean.replace(":", "-", 2)
        # Sub-second precision is not accepted by strptime
        if "." in clean_exif:
            clean_exif = clean_exif.split(".")[0]
        return datetime.strptime(clean_exif, "%Y-%m-%d %H:%M:%S")
    except ValueError:
        pass

    return None
