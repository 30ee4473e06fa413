"""RIFF/WAVE framing for raw microphone samples.

Layout (little-endian):

    0  "RIFF"           4   chunk size (total - 8)
    8  "WAVE"           12  "fmt "
    16 16 (fmt size)    20  1 (PCM)         22  1 (mono)
    24 sample rate      28  byte rate       32  block align
    34 16 (bits)        36  "data"          40  data size (total - 44)
    44 samples...

The two size fields are written as zero placeholders when recording starts
and patched by update_wav_header() once the data length is known.
"""

from __future__ import annotations

import struct
from typing import BinaryIO

from .exceptions import UnseekableStreamError

WAV_HEADER_SIZE = 44

BITS_PER_SAMPLE = 16
BYTES_PER_SAMPLE = BITS_PER_SAMPLE // 8
NUM_CHANNELS = 1

_CHUNK_SIZE_OFFSET = 4
_DATA_SIZE_OFFSET = 40

_HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")


def build_wav_header(sample_rate: int) -> bytes:
    """Return a 44-byte PCM mono 16-bit header with zeroed size fields."""

    return _HEADER.pack(
        b"RIFF",
        0,
        b"WAVE",
        b"fmt ",
        16,
        1,
        NUM_CHANNELS,
        sample_rate,
        sample_rate * NUM_CHANNELS * BYTES_PER_SAMPLE,
        NUM_CHANNELS * BYTES_PER_SAMPLE,
        BITS_PER_SAMPLE,
        b"data",
        0,
    )


def write_wav_header(stream: BinaryIO, sample_rate: int) -> None:
    """Write the provisional header with zeroed size fields."""

    stream.write(build_wav_header(sample_rate))


def update_wav_header(stream: BinaryIO) -> None:
    """Patch the chunk size fields from the current stream length.

    The stream position is restored before returning.
    """

    if not stream.seekable():
        raise UnseekableStreamError("Can't seek stream to update wav header")

    old_pos = stream.tell()
    total = stream.seek(0, 2)
    if total < WAV_HEADER_SIZE:
        stream.seek(old_pos)
        raise ValueError(f"stream is shorter than a wav header: {total} bytes")

    stream.seek(_CHUNK_SIZE_OFFSET)
    stream.write(struct.pack("<I", total - 8))

    stream.seek(_DATA_SIZE_OFFSET)
    stream.write(struct.pack("<I", total - WAV_HEADER_SIZE))

    stream.seek(old_pos)
