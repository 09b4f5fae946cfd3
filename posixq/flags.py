"""Canonical open flags, independent of any platform's O_* values."""

import enum

from .errors import InvalidArgument


class OpenFlags(enum.IntFlag):
    """Flags accepted when opening a queue."""

    READ_ONLY = 0b0000001
    WRITE_ONLY = 0b0000010
    READ_WRITE = 0b0000100
    CLOSE_ON_EXEC = 0b0001000
    CREATE = 0b0010000
    EXCLUSIVE_CREATE = 0b0100000
    NON_BLOCKING = 0b1000000


ACCESS_MODES = (OpenFlags.READ_ONLY, OpenFlags.WRITE_ONLY, OpenFlags.READ_WRITE)

_KNOWN_BITS = 0b1111111


def validate_flags(flags: OpenFlags | int) -> OpenFlags:
    """
    Checks that ``flags`` form a usable combination.

    :param flags: The requested flags.
    :return: The flags, coerced to OpenFlags.
    :raises InvalidArgument: If the access mode is missing or ambiguous,
        unknown bits are set, or EXCLUSIVE_CREATE is used without CREATE.
    """
    value = int(flags)
    if value & ~_KNOWN_BITS:
        raise InvalidArgument(f'unknown open flag bits: {value:#b}')
    flags = OpenFlags(value)

    modes = [mode for mode in ACCESS_MODES if mode in flags]
    if len(modes) != 1:
        raise InvalidArgument(
            'exactly one of READ_ONLY, WRITE_ONLY or READ_WRITE is required'
        )
    if OpenFlags.EXCLUSIVE_CREATE in flags and OpenFlags.CREATE not in flags:
        raise InvalidArgument('EXCLUSIVE_CREATE requires CREATE')
    return flags
