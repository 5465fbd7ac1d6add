from itertools import count

_ID_LENGTH = 8
_counter = count()


def get_id(prefix: str = "R") -> str:
    """Return a monotonically increasing, prefixed hex ID such as ``R0000001F``.

    IDs are zero-padded to at least ``_ID_LENGTH`` hex digits and grow in
    length once the counter outruns the padding.
    """
    return f"{prefix}{next(_counter):0{_ID_LENGTH}X}"
