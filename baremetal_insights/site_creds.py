# site_creds.py
# Returns BMC credentials for a site in the order you want to try them.
# Passwords are pulled from the keyring. With a master file configured the
# encrypted file keyring is bound first, so nothing prompts at runtime.

import pathlib
from typing import List, Optional, Tuple

import keyring
from keyrings.alt.file import EncryptedKeyring

from baremetal_insights.errors import ConfigError

# Default username order (edit if needed)
DEFAULT_USERS = [
    "root",
    "admin",
    "Administrator",
]

DEFAULT_CRYPT_PATH = "~/.local/share/python_keyring/crypted_pass.cfg"


def bind_keyring(master_path: str, crypt_path: str = DEFAULT_CRYPT_PATH) -> pathlib.Path:
    """
    Bind EncryptedKeyring with the master password read from master_path.
    """
    mp = pathlib.Path(master_path).expanduser()
    if not mp.exists():
        raise ConfigError(f"Master file not found: {mp}")
    master = mp.read_text().strip()
    cp = pathlib.Path(crypt_path).expanduser()
    cp.parent.mkdir(parents=True, exist_ok=True)

    kr = EncryptedKeyring()
    kr.file_path = str(cp)
    kr.keyring_key = master
    keyring.set_keyring(kr)
    return cp


def get_site_credentials(site: str, users: Optional[List[str]] = None) -> List[Tuple[str, str]]:
    """
    Return list of (user, password) for given site, in order.
    Skips users that have no stored password.
    """
    order = users or DEFAULT_USERS
    creds: List[Tuple[str, str]] = []
    for u in order:
        pw = keyring.get_password(site, u)
        if pw:
            creds.append((u, pw))
    return creds
