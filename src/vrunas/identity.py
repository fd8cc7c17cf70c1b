"""Resolve user and group names to numeric ids."""

import grp
import logging
import pwd

log = logging.getLogger(__name__)

# uid_t/gid_t are 32-bit unsigned; (uid_t)-1 means "unchanged" to setuid.
MAX_ID = 2**32 - 2


def parse_numeric_id(value: str) -> int | None:
    """Parse an id literal the way strtol(value, NULL, 0) would, or return None.

    Decimal, 0x-prefixed hexadecimal and 0-prefixed octal literals are
    accepted. A 0 followed by any other letter (0o17, 0b1) is not
    numeric, as strtol would stop at the letter. Negative numbers are not
    numeric either.
    """
    text = value.strip()
    if not text or text != value or not text.isascii() or not text.isalnum():
        return None
    if len(text) > 1 and text[0] == "0" and text[1].isalpha() and text[1] not in "xX":
        return None
    try:
        if len(text) > 1 and text[0] == "0" and text[1] not in "xX":
            return int(text, 8)
        return int(text, 0)
    except ValueError:
        return None


def lookup_uid(name: str) -> int:
    """Return the uid of a user name; raise KeyError when unknown."""
    uid = pwd.getpwnam(name).pw_uid
    log.debug("user %r has uid %d", name, uid)
    return uid


def lookup_gid(name: str) -> int:
    """Return the gid of a group name; raise KeyError when unknown."""
    gid = grp.getgrnam(name).gr_gid
    log.debug("group %r has gid %d", name, gid)
    return gid


def resolve_uid(value: str) -> int:
    """Resolve a numeric uid literal or a user name.

    A numeric literal short-circuits and never touches the user database.
    """
    uid = parse_numeric_id(value)
    if uid is not None:
        return uid
    return lookup_uid(value)


def resolve_gid(value: str) -> int:
    """Resolve a numeric gid literal or a group name."""
    gid = parse_numeric_id(value)
    if gid is not None:
        return gid
    return lookup_gid(value)
