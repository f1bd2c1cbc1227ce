# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Shared fixtures for the rafkit tests.

Copyright 2025 DNAi inc.
"""

import pytest

from builders import build_raf


@pytest.fixture
def raf_bytes():
    return build_raf()


@pytest.fixture
def make_raf_file(tmp_path):
    """Write RAF bytes (default: build_raf()) to a file and return its path."""
    def _make(data=None, name='image.raf'):
        path = tmp_path / name
        path.write_bytes(build_raf() if data is None else data)
        return path
    return _make


@pytest.fixture
def raf_file(make_raf_file):
    return make_raf_file()
