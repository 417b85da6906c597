"""HTTP clients."""
from .poster import PosterClient  # noqa: F401
