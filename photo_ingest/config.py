"""
Configuration constants for the photo ingest engine.
"""

# --- Storage Layout ---
INCOMING_FOLDER = "Incoming"
STORAGE_FOLDER = "Storage"
SORTED_FOLDER = "Sorted"
CONFLICT_FOLDER = "Conflicts"
DUPLICATE_FOLDER = "Duplicates"
TRASHBIN_FOLDER = "Trashbin"
NO_MEDIA_FOLDER = "NoImages"

CATALOG_FILE = "photo_catalog.db"
LOG_FILE = "ingest.log"

# --- File Type Definitions ---
IMAGE_EXTS = {'.jpg', '.jpeg', '.png', '.heic', '.webp', '.tif', '.tiff'}
VIDEO_EXTS = {'.mp4', '.mov', '.m4v', '.avi', '.mts', '.3gp'}

EXT_TO_TYPE = {}
for ext in IMAGE_EXTS: EXT_TO_TYPE[ext] = 'image'
for ext in VIDEO_EXTS: EXT_TO_TYPE[ext] = 'video'

# --- Metadata Parsing ---
UNKNOWN = "Unknown"
UNKNOWN_CAMERA = f"{UNKNOWN} {UNKNOWN}"

DATE_TAGS = [
    'EXIF DateTimeOriginal',
    'EXIF DateTimeDigitized',
    'Image DateTime',
]
MAKE_TAG = 'Image Make'
MODEL_TAG = 'Image Model'

# --- Hashing & Comparison ---
HASH_CHUNK_SIZE = 64 * 1024  # 64 KB chunks for reading
COMPARE_CHUNK_SIZE = 100 * 1024

# Sentinel hash for files that are not recognized media
EMPTY_HASH = ""

# --- Organization ---
TARGET_DIR_PATTERN = "{camera}/{ts:%Y}-{ts:%m}-{ts:%d}"
TARGET_FILE_PATTERN = "{ts:%H}-{ts:%M}-{ts:%S}"

# What to do with a sorted file whose content is already catalogued:
#   merge - append its path to the existing record
#   warn  - report it and leave the record untouched
SORTED_DUPLICATE_POLICIES = ('merge', 'warn')
DEFAULT_SORTED_DUPLICATE_POLICY = 'merge'
