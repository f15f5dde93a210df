"""32-bit hash shared with the asset build toolchain.

Type ids are the hash of the type name and content fingerprints are the
hash of a chunk buffer, so both must stay bit-compatible with the
pipeline that produced the manifests. The algorithm is Paul Hsieh's
SuperFastHash seeded with the input length.
"""

MASK_32 = 0xFFFFFFFF


def _signed_byte(value: int) -> int:
    return value - 0x100 if value & 0x80 else value


def fast_hash(data: bytes | str) -> int:
    """Hash a byte string (or single-byte text) to an unsigned 32-bit value.

    Args:
        data: Raw bytes, or a string encoded one byte per character, as names
            are stored

    Returns:
        Unsigned 32-bit hash. Empty input hashes to 0.
    """
    if isinstance(data, str):
        data = data.encode("latin-1")

    length = len(data)
    if length == 0:
        return 0

    h = length
    remainder = length & 3
    pos = 0

    for _ in range(length >> 2):
        h = (h + (data[pos] | (data[pos + 1] << 8))) & MASK_32
        tmp = (((data[pos + 2] | (data[pos + 3] << 8)) << 11) ^ h) & MASK_32
        h = ((h << 16) & MASK_32) ^ tmp
        h = (h + (h >> 11)) & MASK_32
        pos += 4

    if remainder == 3:
        h = (h + (data[pos] | (data[pos + 1] << 8))) & MASK_32
        h ^= (h << 16) & MASK_32
        h ^= (_signed_byte(data[pos + 2]) << 18) & MASK_32
        h = (h + (h >> 11)) & MASK_32
    elif remainder == 2:
        h = (h + (data[pos] | (data[pos + 1] << 8))) & MASK_32
        h ^= (h << 11) & MASK_32
        h = (h + (h >> 17)) & MASK_32
    elif remainder == 1:
        h = (h + _signed_byte(data[pos])) & MASK_32
        h ^= (h << 10) & MASK_32
        h = (h + (h >> 1)) & MASK_32

    # Avalanche
    h ^= (h << 3) & MASK_32
    h = (h + (h >> 5)) & MASK_32
    h ^= (h << 4) & MASK_32
    h = (h + (h >> 17)) & MASK_32
    h ^= (h << 25) & MASK_32
    h = (h + (h >> 6)) & MASK_32
    return h
