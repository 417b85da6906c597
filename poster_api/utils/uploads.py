"""Multipart upload helpers."""
from __future__ import annotations

from typing import IO, Any, Dict, Tuple, Union

UploadFile = Union[bytes, IO[bytes], Tuple[Any, ...]]

DEFAULT_FILENAME = "upload"


def image_form(file: UploadFile, field_name: str = "image") -> Dict[str, Any]:
    """Build the ``files`` mapping for a single-image multipart upload.

    Accepts raw bytes, a binary file object, or a ``(filename, content)`` /
    ``(filename, content, content_type)`` tuple.
    """

    if isinstance(file, tuple):
        if len(file) not in (2, 3):
            raise ValueError("upload tuples must be (filename, content[, content_type])")
        return {field_name: file}
    if isinstance(file, (bytes, bytearray)):
        return {field_name: (DEFAULT_FILENAME, bytes(file))}
    name = getattr(file, "name", None)
    filename = str(name).replace("\\", "/").rsplit("/", 1)[-1] if name else DEFAULT_FILENAME
    return {field_name: (filename, file)}
