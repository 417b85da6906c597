"""Utility helpers."""
from .paths import join_path, optional_segment, path_segment  # noqa: F401
from .uploads import UploadFile, image_form  # noqa: F401
