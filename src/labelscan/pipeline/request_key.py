"""Request key helpers.

Convention: ``<pipelineVersion>:<contentHash>:<profileVersion>``. Any change
to pipeline behavior must bump the pipeline version so stale cache entries
stop matching.
"""

import hashlib
from pathlib import Path
from typing import Optional, Union

from labelscan.config import settings


def compute_file_hash(file_path: Path, chunk_size: int = 8192) -> str:
    """Compute SHA-256 hash of a file."""
    sha256 = hashlib.sha256()
    with open(file_path, "rb") as f:
        while chunk := f.read(chunk_size):
            sha256.update(chunk)
    return sha256.hexdigest()


def compute_content_hash(content: Union[bytes, bytearray, str, Path]) -> str:
    """SHA-256 of image bytes, or of a file's bytes when given a path."""
    if isinstance(content, (bytes, bytearray)):
        return hashlib.sha256(bytes(content)).hexdigest()
    return compute_file_hash(Path(content))


def build_request_key(
    content: Union[bytes, bytearray, str, Path],
    profile_version: Union[str, int] = 0,
    pipeline_version: Optional[str] = None,
) -> str:
    """Derive a deterministic request key for an image.

    Args:
        content: Image bytes or path to the image file.
        profile_version: Version of the profile the result is computed for.
        pipeline_version: Pipeline version (default from settings).

    Returns:
        Request key string.
    """
    version = pipeline_version or settings.pipeline_version
    return f"{version}:{compute_content_hash(content)}:{profile_version}"
