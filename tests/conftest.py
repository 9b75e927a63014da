import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from debarchive.signing import SigningKey  # noqa: E402
from helpers import (  # noqa: E402
    TEST_KEY_EMAIL,
    create_gnupg_home,
    gpg_available,
    remove_gnupg_home,
)


@pytest.fixture(scope='session')
def gnupg_home():
    if not gpg_available():
        pytest.skip("gpg not installed")
    home = create_gnupg_home()
    yield home
    remove_gnupg_home(home)


@pytest.fixture
def signing_key(gnupg_home):
    return SigningKey(TEST_KEY_EMAIL, gnupg_home=gnupg_home)
