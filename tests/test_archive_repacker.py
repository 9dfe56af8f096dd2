"""Tests for tarball unpacking and module zip repacking."""

import os
import zipfile
from datetime import datetime, timezone

import pytest

from npmgoproxy.archive.repacker import ArchiveRepacker, unpack_tarball
from npmgoproxy.exceptions import ArchiveError
from npmgoproxy.registry.npm.models import DistributionInfo, PackageVersion

from conftest import make_tarball

PUBLISHED = datetime(2021, 9, 7, 13, 48, 13, tzinfo=timezone.utc)


def _version(name="alpinejs", version="v3.3.3", time=PUBLISHED):
    return PackageVersion(
        name=name,
        version=version,
        raw_version=version[1:],
        dist=DistributionInfo("", ""),
        time=time,
    )


def _write(tmp_path, data, name="pkg.tgz"):
    path = tmp_path / name
    path.write_bytes(data)
    return str(path)


class TestUnpackTarball:
    """Tests for unpack_tarball."""

    def test_regular_files(self, tmp_path, alpine_tarball):
        dest = tmp_path / "out"
        dest.mkdir()
        assert unpack_tarball(_write(tmp_path, alpine_tarball), str(dest)) == 3
        assert (dest / "package" / "dist" / "module.esm.js").read_bytes() == b"export default {};\n"

    def test_symlink_skipped(self, tmp_path, caplog):
        data = make_tarball({"package/index.js": b"x"}, links=["package/alias.js"])
        dest = tmp_path / "out"
        dest.mkdir()
        assert unpack_tarball(_write(tmp_path, data), str(dest)) == 1
        assert not os.path.lexists(dest / "package" / "alias.js")
        assert "Skipping non-regular tar entry" in caplog.text

    def test_parent_traversal_rejected(self, tmp_path):
        data = make_tarball({"package/../../evil.js": b"x"})
        dest = tmp_path / "out"
        dest.mkdir()
        with pytest.raises(ArchiveError):
            unpack_tarball(_write(tmp_path, data), str(dest))
        assert not (tmp_path / "evil.js").exists()

    def test_corrupt_archive(self, tmp_path):
        dest = tmp_path / "out"
        dest.mkdir()
        with pytest.raises(ArchiveError):
            unpack_tarball(_write(tmp_path, b"not a tarball at all"), str(dest))


class TestArchiveRepacker:
    """Tests for ArchiveRepacker.repack."""

    def test_identity(self):
        repacker = ArchiveRepacker("gohugo.io/npmjs")
        assert repacker.identity(_version()).path == "gohugo.io/npmjs/alpinejs/v3"
        assert repacker.identity(_version("@vue/reactivity", "v1.0.0")).path == "gohugo.io/npmjs/___vue/reactivity"

    def test_archive_layout(self, tmp_path, alpine_tarball):
        with ArchiveRepacker().repack(_write(tmp_path, alpine_tarball), _version()) as handle:
            with zipfile.ZipFile(handle.path) as zf:
                names = zf.namelist()
                infos = zf.infolist()
            assert handle.size == os.path.getsize(handle.path)
            assert handle.modified == PUBLISHED
            workdir = handle.workdir
        assert names == [
            "gohugo.io/npmjs/alpinejs/v3@v3.3.3/package/README.md",
            "gohugo.io/npmjs/alpinejs/v3@v3.3.3/package/dist/module.esm.js",
            "gohugo.io/npmjs/alpinejs/v3@v3.3.3/package/package.json",
        ]
        assert all(info.date_time == (1980, 1, 1, 0, 0, 0) for info in infos)
        assert not os.path.exists(workdir)

    def test_deterministic(self, tmp_path, alpine_tarball):
        """Repacking the same tarball twice yields byte-identical archives."""
        tarball = _write(tmp_path, alpine_tarball)
        repacker = ArchiveRepacker()
        with repacker.repack(tarball, _version()) as first, repacker.repack(tarball, _version()) as second:
            with first.open() as a, second.open() as b:
                assert a.read() == b.read()

    def test_workdir_removed_on_failure(self, tmp_path):
        workdir = tmp_path / "work"
        workdir.mkdir()
        data = make_tarball({"package/../../evil.js": b"x"})
        with pytest.raises(ArchiveError):
            ArchiveRepacker().repack(_write(tmp_path, data), _version(), workdir=str(workdir))
        assert not workdir.exists()

    def test_symlink_absent_from_archive(self, tmp_path):
        data = make_tarball({"package/index.js": b"x"}, links=["package/alias.js"])
        with ArchiveRepacker().repack(_write(tmp_path, data), _version(version="v1.0.0")) as handle:
            with zipfile.ZipFile(handle.path) as zf:
                assert zf.namelist() == ["gohugo.io/npmjs/alpinejs@v1.0.0/package/index.js"]

    def test_modified_defaults_to_now(self, tmp_path, alpine_tarball):
        before = datetime.now(timezone.utc)
        with ArchiveRepacker().repack(_write(tmp_path, alpine_tarball), _version(time=None)) as handle:
            assert handle.modified >= before
