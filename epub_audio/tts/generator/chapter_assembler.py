"""
Chapter Assembler - Joins chunk audio files into one chapter file.

Chunks are concatenated byte-for-byte in emission order. Temp chunk files
are removed once the chapter file is written.
"""

import os
from typing import List

from epub_audio.errors import ConcatenationError
from epub_audio.utils.logging_config import get_logger

logger = get_logger(__name__)


class ChapterAssembler:
    """
    Assembles chunk audio files into chapter files.

    Usage:
        assembler = ChapterAssembler(temp_dir)
        path = assembler.write_chunk(assembler.chunk_path("chunk_1_0.wav"), audio_bytes)
        ...
        assembler.concatenate(chunk_paths, output_path)
    """

    def __init__(self, temp_dir: str, log_file_operations: bool = True):
        self.temp_dir = temp_dir
        self.log_file_operations = log_file_operations

    def chunk_path(self, filename: str) -> str:
        os.makedirs(self.temp_dir, exist_ok=True)
        return os.path.join(self.temp_dir, filename)

    def write_chunk(self, path: str, audio_data: bytes) -> str:
        with open(path, "wb") as f:
            f.write(audio_data)
        if self.log_file_operations:
            logger.debug(f"Wrote chunk {os.path.basename(path)} ({len(audio_data)} bytes)")
        return path

    def concatenate(self, chunk_paths: List[str], output_path: str) -> str:
        """
        Concatenate chunk files in order into `output_path` and remove them.

        Args:
            chunk_paths: Chunk files in emission order.
            output_path: Chapter audio file to write.

        Returns:
            The output path.

        Raises:
            ConcatenationError: If a chunk cannot be read or the output
                cannot be written. Chunk files are still removed.
        """
        try:
            os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
            with open(output_path, "wb") as out:
                for chunk_path in chunk_paths:
                    with open(chunk_path, "rb") as f:
                        out.write(f.read())
        except OSError as e:
            logger.error(f"Error concatenating audio files into {output_path}: {e}")
            self.cleanup(chunk_paths)
            raise ConcatenationError(
                f"Failed to concatenate {len(chunk_paths)} chunks into {output_path}: {e}"
            ) from e

        logger.info(f"Concatenated {len(chunk_paths)} audio chunks")
        self.cleanup(chunk_paths)
        return output_path

    def cleanup(self, chunk_paths: List[str]):
        """Remove temp chunk files, logging any that cannot be removed."""
        for chunk_path in chunk_paths:
            try:
                if os.path.exists(chunk_path):
                    os.unlink(chunk_path)
            except OSError as e:
                logger.warning(f"Could not remove temp chunk {chunk_path}: {e}")
