"""Queue name validation."""

from .errors import InvalidArgument, NameTooLong

SEPARATOR = '/'


def validate_name(name: str, name_max: int) -> str:
    """
    Checks a queue name before it is handed to the kernel.

    A valid name is a single leading separator followed by at least one
    character, with no further separators or NUL characters.

    :param name: The queue name, e.g. ``'/jobs'``.
    :param name_max: Maximum encoded length of the part after the separator.
    :return: The name unchanged.
    :raises InvalidArgument: If the name is malformed.
    :raises NameTooLong: If the name exceeds ``name_max`` bytes.
    """
    if not isinstance(name, str):
        raise InvalidArgument(f'queue name must be str, not {type(name).__name__}')
    if not name.startswith(SEPARATOR):
        raise InvalidArgument(f'queue name must start with {SEPARATOR!r}: {name!r}')

    tail = name[1:]
    if not tail:
        raise InvalidArgument('queue name is empty after the separator')
    if SEPARATOR in tail:
        raise InvalidArgument(
            f'queue name must not contain a second {SEPARATOR!r}: {name!r}'
        )
    if '\x00' in tail:
        raise InvalidArgument('queue name must not contain NUL characters')
    if len(tail.encode()) > name_max:
        raise NameTooLong(f'queue name longer than {name_max} bytes: {name!r}')
    return name
