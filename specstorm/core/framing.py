"""Delimiter framing for buffered child output."""

from typing import List, Tuple


def split_frames(
    buffer: bytes, delimiter: bytes, final: bool
) -> Tuple[List[bytes], bytes]:
    """Split buffered output into chunks ready to be written.

    With ``final`` set, every piece between delimiters is a chunk and
    nothing is kept back. Otherwise only delimiter-terminated segments are
    chunks; the bytes after the last delimiter are returned as the
    remainder to be kept for the next flush. Delimiter markers and empty
    pieces never appear in the returned chunks.
    """
    if final:
        complete, remainder = bytes(buffer), b""
    else:
        end = buffer.rfind(delimiter)
        if end == -1:
            return [], bytes(buffer)
        complete = bytes(buffer[:end])
        remainder = bytes(buffer[end + len(delimiter) :])
    chunks = [piece for piece in complete.split(delimiter) if piece]
    return chunks, remainder
