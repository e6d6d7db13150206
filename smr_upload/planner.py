"""
Module for splitting an artifact into upload chunks.
"""
import logging
from pathlib import Path
from typing import List

from .errors import FileSystemError
from .models import ChunkDescriptor

logger = logging.getLogger(__name__)


def plan_chunks(total_size: int, chunk_size: int) -> List[ChunkDescriptor]:
    """Split ``total_size`` bytes into consecutive chunks.

    Every chunk is ``chunk_size`` bytes long except possibly the last one,
    which holds the remainder. An empty artifact yields an empty plan.

    Args:
        total_size: Size of the artifact in bytes
        chunk_size: Maximum size of a single chunk in bytes

    Returns:
        Ordered list of chunk descriptors covering [0, total_size)
    """
    if total_size < 0:
        raise ValueError(f"total_size must not be negative: {total_size}")
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive: {chunk_size}")

    chunk_count = -(-total_size // chunk_size)
    plan = []
    for index in range(chunk_count):
        offset = index * chunk_size
        plan.append(ChunkDescriptor(
            index=index,
            part_number=index + 1,
            byte_offset=offset,
            byte_length=min(chunk_size, total_size - offset)
        ))
    return plan


def read_chunk(file_path: Path, chunk: ChunkDescriptor) -> bytes:
    """Read the bytes of a single chunk from disk.

    The file is opened for this chunk only, so at most one chunk is held
    in memory at a time.

    Args:
        file_path: Path to the artifact
        chunk: Chunk to read

    Returns:
        The chunk's bytes

    Raises:
        FileSystemError: If the file cannot be read or is shorter than planned
    """
    try:
        with open(file_path, 'rb') as f:
            f.seek(chunk.byte_offset)
            data = f.read(chunk.byte_length)
    except OSError as e:
        raise FileSystemError(f"failed to read chunk {chunk.part_number} of {file_path}: {e}") from e

    if len(data) != chunk.byte_length:
        raise FileSystemError(
            f"short read for chunk {chunk.part_number} of {file_path}: "
            f"expected {chunk.byte_length} bytes, got {len(data)}"
        )

    logger.debug(f"Read {len(data)} bytes at offset {chunk.byte_offset} from {file_path}")
    return data
