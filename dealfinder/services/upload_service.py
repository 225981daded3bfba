import os
import shutil
from pathlib import Path

from fastapi import UploadFile

from dealfinder.core.config import settings
from dealfinder.core.id_utils import new_id

PUBLIC_PREFIX = "/uploads"


def upload_root() -> Path:
    return Path(settings.upload_dir)


def _extension(filename: str | None) -> str:
    ext = os.path.splitext(filename or "")[1].lower().lstrip(".")
    if ext not in settings.upload_allowed_extensions:
        allowed = ", ".join(settings.upload_allowed_extensions)
        raise ValueError(f"Only image files are allowed ({allowed})")
    return ext


def _size_of(file: UploadFile) -> int:
    if file.size is not None:
        return file.size
    file.file.seek(0, os.SEEK_END)
    size = file.file.tell()
    file.file.seek(0)
    return size


def validate_image(file: UploadFile) -> str:
    ext = _extension(file.filename)
    if _size_of(file) > settings.upload_max_bytes:
        raise ValueError(f"File {file.filename} exceeds the {settings.upload_max_bytes} byte limit")
    return ext


def save_image(file: UploadFile, folder: str) -> str:
    """Writes one image under the upload dir and returns its public path."""
    ext = validate_image(file)
    target_dir = upload_root() / folder
    target_dir.mkdir(parents=True, exist_ok=True)
    name = f"{new_id()}.{ext}"
    file.file.seek(0)
    with open(target_dir / name, "wb") as out:
        shutil.copyfileobj(file.file, out)
    return f"{PUBLIC_PREFIX}/{folder}/{name}"


def save_images(files: list[UploadFile], folder: str, *, max_files: int) -> list[str]:
    if len(files) > max_files:
        raise ValueError(f"At most {max_files} images can be uploaded")
    # Validate everything before touching the disk.
    for file in files:
        validate_image(file)
    return [save_image(file, folder) for file in files]
