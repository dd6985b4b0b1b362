"""Prime signatures and string reference hashes.

"Prime" is the historical name; the values are not prime. An instruction's
prime is computed from its mnemonic like so::

    hash = 1
    for every byte c at 1-based position i in mnemonic:
        hash *= PRIMES[c] ** i

Basic block and function primes are the sum of their instruction primes.
Everything here is pure and independent of addresses and byte order.
"""

from __future__ import annotations

from typing import Iterable

_U32 = 1 << 32
_U64 = 1 << 64


def _first_primes(count: int) -> tuple[int, ...]:
    primes: list[int] = []
    candidate = 2
    while len(primes) < count:
        if all(candidate % p for p in primes if p * p <= candidate):
            primes.append(candidate)
        candidate += 1
    return tuple(primes)


PRIMES: tuple[int, ...] = _first_primes(256)


def _as_bytes(text: str | bytes) -> bytes:
    if isinstance(text, bytes):
        return text
    return text.encode("utf-8")


def _product(data: bytes, start: int, modulus: int) -> int:
    value = 1
    for position, byte in enumerate(data, start=start):
        value = value * pow(PRIMES[byte], position, modulus) % modulus
    return value


def mnemonic_prime(mnemonic: str | bytes) -> int:
    """Return the 32-bit instruction prime of a single mnemonic."""
    return _product(_as_bytes(mnemonic), 1, _U32)


def additive_prime(mnemonics: Iterable[str | bytes]) -> int:
    """Return the 64-bit block/function prime: the sum of instruction primes."""
    total = 0
    for mnemonic in mnemonics:
        total = (total + mnemonic_prime(mnemonic)) % _U64
    return total


def fingerprint(tokens: Iterable[str | bytes]) -> int:
    """Return an order-sensitive 64-bit signature over a token sequence.

    Positions keep counting across tokens, and every token boundary consumes
    one position, so ``["mov", "add"]`` and ``["add", "mov"]`` differ. For a
    single token the low 32 bits equal :func:`mnemonic_prime`.
    """
    value = 1
    position = 1
    for token in tokens:
        data = _as_bytes(token)
        value = value * _product(data, position, _U64) % _U64
        position += len(data) + 1
    return value


def sdbm_hash(data: str | bytes) -> int:
    """SDBM hash as used for ``Instruction.string_reference`` (32-bit)."""
    value = 0
    for byte in _as_bytes(data):
        value = (byte + (value << 6) + (value << 16) - value) % _U32
    return value
