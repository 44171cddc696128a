"""Hash utilities for litmeta."""

import hashlib


def hash_object(data: bytes) -> str:
    """
    Compute SHA-1 hash of data.

    Args:
        data: Bytes to hash

    Returns:
        40-character hex string
    """
    return hashlib.sha1(data).hexdigest()


def hash_blob_data(data: bytes) -> str:
    """
    Compute the object id a blob with this content would have.

    Args:
        data: Raw file content

    Returns:
        40-character hex string
    """
    header = f"blob {len(data)}\0".encode()
    return hash_object(header + data)
