# extractor/users.py
import logging
from pathlib import Path

from .errors import UsersFileUnreadable

logger = logging.getLogger(__name__)


def normalize_username(name: str) -> str:
    """
    The one comparison rule for account names: surrounding whitespace is
    dropped and case is folded, since Windows account names are case-insensitive.
    """
    return name.strip().casefold()


def load_target_users(users_file: str | Path | None) -> frozenset[str] | None:
    """
    Load the target-user list, one account name per line.

    Blank lines are ignored; names are normalized with
    `normalize_username`. Returns None when no file is given, which means
    "no user filtering". A file that yields no names gives an empty set: the
    filter stays active and rejects everything.

    Raises:
        UsersFileUnreadable: the file was given but cannot be read.
    """
    if users_file is None:
        logger.info("No users file provided, processing events for all users.")
        return None

    path = Path(users_file)
    try:
        with path.open("r", encoding="utf-8-sig") as f:
            lines = f.readlines()
    except (OSError, UnicodeDecodeError) as exc:
        raise UsersFileUnreadable(f"Cannot read users file {path}: {exc}") from exc

    users = set()
    for line in lines:
        line = line.strip()
        if not line:
            continue
        users.add(normalize_username(line))

    if not users:
        logger.warning("Users file %s contains no usernames; every record will be rejected", path)
    else:
        logger.info("Loaded %d target user(s) from %s", len(users), path)
    return frozenset(users)
