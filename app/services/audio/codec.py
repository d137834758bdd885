"""Mu-law decoding and WAV container building for Twilio media streams.

Twilio sends 8 kHz mono G.711 mu-law audio, one byte per sample. Recordings
are stored as 16-bit linear PCM WAV files.
"""
import struct
from dataclasses import dataclass
from typing import Iterable, List, Union

MULAW_BIAS = 0x84
WAV_HEADER_SIZE = 44


def _expand(mulaw: int) -> int:
    mulaw = ~mulaw & 0xFF
    sign = mulaw & 0x80
    exponent = (mulaw & 0x70) >> 4
    mantissa = mulaw & 0x0F
    sample = ((mantissa << 4) + 0x08) << exponent
    sample -= MULAW_BIAS
    return -sample if sign else sample


# Lookup table, index = mu-law byte
_DECODE_TABLE: List[int] = [_expand(value) for value in range(256)]


def decode_sample(mulaw: int) -> int:
    """Expand a single mu-law byte into a signed 16-bit linear sample."""
    return _DECODE_TABLE[mulaw & 0xFF]


def decode_buffer(data: bytes) -> List[int]:
    """Decode every mu-law byte in ``data``, preserving order."""
    return [_DECODE_TABLE[b] for b in data]


def samples_to_bytes(samples: Iterable[int]) -> bytes:
    """Pack signed 16-bit samples as little-endian bytes."""
    samples = list(samples)
    return struct.pack(f"<{len(samples)}h", *samples)


def decode_to_pcm(data: bytes) -> bytes:
    """Decode mu-law bytes straight to little-endian 16-bit PCM bytes."""
    return samples_to_bytes(decode_buffer(data))


def build_audio_container(
    pcm: Union[bytes, bytearray, Iterable[int]],
    sample_rate: int = 8000,
    channels: int = 1,
    bits_per_sample: int = 16,
) -> bytes:
    """
    Wrap linear PCM in a 44-byte RIFF/WAVE header.

    Args:
        pcm: Either packed little-endian sample bytes or a sequence of ints
        sample_rate: Samples per second
        channels: Channel count
        bits_per_sample: Sample width in bits

    Returns:
        Complete WAV file bytes
    """
    if isinstance(pcm, (bytes, bytearray, memoryview)):
        data = bytes(pcm)
    else:
        data = samples_to_bytes(pcm)

    byte_rate = sample_rate * channels * bits_per_sample // 8
    block_align = channels * bits_per_sample // 8

    header = struct.pack(
        "<4sI4s4sIHHIIHH4sI",
        b"RIFF",
        36 + len(data),
        b"WAVE",
        b"fmt ",
        16,  # fmt chunk size
        1,  # PCM
        channels,
        sample_rate,
        byte_rate,
        block_align,
        bits_per_sample,
        b"data",
        len(data),
    )
    return header + data


@dataclass
class ContainerHeader:
    """Fields declared in a WAV header."""

    riff_size: int
    format_tag: int
    channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    data_size: int

    def matches_payload(self, payload_size: int) -> bool:
        """Check the declared sizes against the actual payload length."""
        return self.data_size == payload_size and self.riff_size == 36 + payload_size


def read_container_header(wav: bytes) -> ContainerHeader:
    """Parse the 44-byte header written by ``build_audio_container``."""
    if len(wav) < WAV_HEADER_SIZE:
        raise ValueError(f"WAV data too short: {len(wav)} bytes")

    (
        riff,
        riff_size,
        wave,
        fmt,
        _fmt_size,
        format_tag,
        channels,
        sample_rate,
        byte_rate,
        block_align,
        bits_per_sample,
        data_tag,
        data_size,
    ) = struct.unpack("<4sI4s4sIHHIIHH4sI", wav[:WAV_HEADER_SIZE])

    if riff != b"RIFF" or wave != b"WAVE" or fmt != b"fmt " or data_tag != b"data":
        raise ValueError("Not a canonical PCM WAV header")

    return ContainerHeader(
        riff_size=riff_size,
        format_tag=format_tag,
        channels=channels,
        sample_rate=sample_rate,
        byte_rate=byte_rate,
        block_align=block_align,
        bits_per_sample=bits_per_sample,
        data_size=data_size,
    )
