"""Photo providers: JSON collections and annotated image directories."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

from PIL import Image, UnidentifiedImageError

from .base import PhotoProvider
from .models import PhotoMetadata, PhotoRecord, parse_timestamp

logger = logging.getLogger(__name__)

# Supported image formats
SUPPORTED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tiff", ".webp"}

# EXIF tags
EXIF_IFD = 0x8769
TAG_MAKE = 0x010F
TAG_MODEL = 0x0110
TAG_DATETIME = 0x0132
TAG_DATETIME_ORIGINAL = 0x9003


class JsonCollectionProvider(PhotoProvider):
    """Load raw photo records from a JSON file.

    The file holds either a list of records or an object with a ``photos``
    list. Records are returned unparsed so the indexer can skip bad ones.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()

    def load_records(self) -> List[Any]:
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict):
            data = data.get("photos", [])
        if not isinstance(data, list):
            raise ValueError(f"Photo collection must be a list or an object with 'photos': {self.path}")
        logger.info(f"Loaded {len(data)} records from {self.path}")
        return data

    def load_photos(self) -> List[PhotoRecord]:
        photos = []
        for position, raw in enumerate(self.load_records()):
            try:
                photos.append(PhotoRecord.from_dict(raw))
            except ValueError as e:
                logger.warning(f"Skipping record {position} of {self.path}: {e}")
        return photos


class DirectoryPhotoProvider(PhotoProvider):
    """Scan a directory for images and build records from EXIF and sidecars.

    A sidecar ``<image>.json`` (e.g. ``beach.jpg.json``) holds annotations in
    the record or metadata format; its values win over EXIF.
    """

    def __init__(self, directory: Union[str, Path], recursive: bool = True):
        self.directory = Path(directory).expanduser()
        self.recursive = recursive
        self._stats = {"scanned": 0, "skipped": 0, "errors": 0}

    def load_photos(self) -> List[PhotoRecord]:
        directory_path = self.directory.resolve()
        if not directory_path.is_dir():
            raise ValueError(f"Not a directory: {self.directory}")

        photos = list(self._scan_directory_iter(directory_path))
        logger.info(
            f"Scan completed: {self._stats['scanned']} scanned, "
            f"{self._stats['skipped']} skipped, {self._stats['errors']} errors"
        )
        return photos

    def _scan_directory_iter(self, directory: Path) -> Iterator[PhotoRecord]:
        try:
            entries = sorted(directory.iterdir())
        except PermissionError:
            logger.warning(f"Permission denied: {directory}")
            return

        for entry in entries:
            if entry.is_dir() and self.recursive:
                yield from self._scan_directory_iter(entry)
            elif entry.is_file() and entry.suffix.lower() in SUPPORTED_EXTENSIONS:
                record = self._build_record(entry)
                if record is None:
                    self._stats["skipped"] += 1
                else:
                    self._stats["scanned"] += 1
                    yield record

    def _build_record(self, file_path: Path) -> Optional[PhotoRecord]:
        try:
            exif = read_exif(file_path)
        except UnidentifiedImageError:
            logger.debug(f"Not a valid image file: {file_path}")
            return None
        except OSError as e:
            logger.error(f"Failed to read {file_path}: {e}")
            self._stats["errors"] += 1
            return None

        photo_id = file_path.relative_to(self.directory.resolve()).as_posix()
        metadata = PhotoMetadata(camera=exif.get("camera"), taken_at=exif.get("taken_at"))
        record = PhotoRecord(id=photo_id, filename=file_path.name, url=file_path.as_uri(), metadata=metadata)

        sidecar = read_sidecar(file_path)
        if sidecar:
            record = _apply_sidecar(record, sidecar)
        if record.metadata.taken_at is None:
            record.metadata.taken_at = datetime.fromtimestamp(file_path.stat().st_mtime)
        return record

    def get_stats(self) -> dict:
        """Get scanning statistics."""
        return self._stats.copy()


def read_exif(file_path: Path) -> Dict[str, Any]:
    """Read camera and capture time from an image's EXIF data."""
    with Image.open(file_path) as img:
        exif = img.getexif()
        sub_ifd = exif.get_ifd(EXIF_IFD) if exif else {}

    result: Dict[str, Any] = {}
    make = str(exif.get(TAG_MAKE) or "").strip().strip("\x00")
    model = str(exif.get(TAG_MODEL) or "").strip().strip("\x00")
    if model and make and model.lower().startswith(make.split()[0].lower()):
        result["camera"] = model
    elif make or model:
        result["camera"] = " ".join(part for part in (make, model) if part)

    taken = parse_timestamp(sub_ifd.get(TAG_DATETIME_ORIGINAL) or exif.get(TAG_DATETIME))
    if taken is not None:
        result["taken_at"] = taken
    return result


def read_sidecar(file_path: Path) -> Optional[Dict[str, Any]]:
    sidecar_path = file_path.with_name(file_path.name + ".json")
    if not sidecar_path.exists():
        return None
    try:
        with open(sidecar_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.warning(f"Ignoring unreadable sidecar {sidecar_path}: {e}")
        return None
    return data if isinstance(data, dict) else None


def _apply_sidecar(record: PhotoRecord, sidecar: Dict[str, Any]) -> PhotoRecord:
    annotations = sidecar.get("metadata", sidecar)
    parsed = PhotoMetadata.from_dict(annotations)
    metadata = record.metadata
    for name in ("keywords", "objects", "scenes", "people"):
        if getattr(parsed, name):
            setattr(metadata, name, getattr(parsed, name))
    for name in ("location", "camera", "taken_at", "confidence"):
        if getattr(parsed, name) is not None:
            setattr(metadata, name, getattr(parsed, name))
    if sidecar.get("title"):
        record.title = str(sidecar["title"])
    if sidecar.get("thumbnail_url") or sidecar.get("thumbnailUrl"):
        record.thumbnail_url = sidecar.get("thumbnail_url") or sidecar.get("thumbnailUrl")
    return record
