import pytest

from tes_extract.archive import Archive


@pytest.fixture
def write_archive(tmp_path):
    """Write archive bytes to tmp_path and return the file's path."""
    def _write(data: bytes, name: str = "test.bsa"):
        path = tmp_path / name
        path.write_bytes(data)
        return path
    return _write


@pytest.fixture
def open_archive(write_archive):
    """Write archive bytes to disk and parse them."""
    def _open(data: bytes, name: str = "test.bsa") -> Archive:
        return Archive.from_file(write_archive(data, name))
    return _open
