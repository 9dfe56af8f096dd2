"""Shared fixtures: in-memory tarballs and a stubbed npm registry."""

import hashlib
import io
import json
import tarfile
from typing import Dict, Iterable, List, Optional
from unittest.mock import patch

import pytest

from npmgoproxy.constants import Constants

REGISTRY = "https://registry.npmjs.org"
ALPINE_SHASUM = "966c94b6847f3d6840c5750e0b14caec82214e56"


def make_tarball(files: Dict[str, bytes], links: Iterable[str] = (), dirs: Iterable[str] = ()) -> bytes:
    """Build a gzipped npm-style tarball with fixed metadata."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for name in dirs:
            info = tarfile.TarInfo(name)
            info.type = tarfile.DIRTYPE
            info.mode = 0o755
            tar.addfile(info)
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
        for name in links:
            info = tarfile.TarInfo(name)
            info.type = tarfile.SYMTYPE
            info.linkname = "index.js"
            tar.addfile(info)
    return buf.getvalue()


def sha1_hex(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


def version_entry(name: str, version: str, tarball: bytes = b"", shasum: Optional[str] = None,
                  dependencies: Optional[Dict[str, str]] = None) -> dict:
    """One entry of a registry ``versions`` map."""
    entry = {
        "name": name,
        "version": version,
        "dist": {
            "shasum": shasum if shasum is not None else sha1_hex(tarball),
            "tarball": f"{REGISTRY}/{name}/-/{name.split('/')[-1]}-{version}.tgz",
        },
    }
    if dependencies is not None:
        entry["dependencies"] = dependencies
    return entry


def package_document(name: str, entries: List[dict], latest: str, times: Optional[Dict[str, str]] = None) -> dict:
    doc = {
        "name": name,
        "dist-tags": {"latest": latest},
        "versions": {e["version"]: e for e in entries},
    }
    if times:
        doc["time"] = times
    return doc


class FakeResponse:
    """Stand-in for ``requests.Response`` covering what the clients use."""

    def __init__(self, status_code: int = 200, body: bytes = b"", chunk_size: int = 7):
        self.status_code = status_code
        self.content = body
        self.text = body.decode("utf-8", errors="replace")
        self._chunk_size = chunk_size
        self.closed = False

    def iter_content(self, chunk_size: int = 1):
        for i in range(0, len(self.content), self._chunk_size):
            yield self.content[i:i + self._chunk_size]

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class FakeUpstream:
    """Routes registry and tarball URLs to canned responses."""

    def __init__(self):
        self.documents: Dict[str, dict] = {}
        self.tarballs: Dict[str, bytes] = {}
        self.requests: List[str] = []

    def add_package(self, doc: dict) -> None:
        self.documents[f"{REGISTRY}/{doc['name']}"] = doc

    def add_tarball(self, url: str, data: bytes) -> None:
        self.tarballs[url] = data

    def get(self, url, **kwargs):
        self.requests.append(url)
        if url in self.documents:
            doc = dict(self.documents[url])
            if kwargs.get("headers", {}).get("Accept") == Constants.NPM_INSTALL_ACCEPT:
                # The abbreviated install document carries no publish times.
                doc.pop("time", None)
            return FakeResponse(200, json.dumps(doc).encode())
        if url in self.tarballs:
            return FakeResponse(200, self.tarballs[url])
        return FakeResponse(404, b'{"error":"Not found"}')


@pytest.fixture
def alpine_tarball():
    return make_tarball({
        "package/package.json": b'{"name": "alpinejs", "version": "3.3.3"}',
        "package/dist/module.esm.js": b"export default {};\n",
        "package/README.md": b"# Alpine\n",
    })


@pytest.fixture
def upstream(alpine_tarball):
    """A stubbed registry serving alpinejs and @vue/reactivity; patches both HTTP call sites."""
    fake = FakeUpstream()
    alpine = [
        version_entry("alpinejs", "3.3.3", alpine_tarball, dependencies={"@vue/reactivity": "^3.0.2"}),
        version_entry("alpinejs", "2.8.2", b"two"),
        version_entry("alpinejs", "3.3.2", b"three-two", dependencies={"@vue/reactivity": "^3.0.2"}),
        version_entry("alpinejs", "1.0.0", b"one"),
        version_entry("alpinejs", "3.0.0-beta.1", b"beta"),
    ]
    fake.add_package(package_document(
        "alpinejs", alpine, latest="3.3.3",
        times={"3.3.3": "2021-09-07T13:48:13.853Z", "3.3.2": "2021-09-01T10:00:00.000Z"},
    ))
    for entry in alpine:
        if entry["version"] == "3.3.3":
            fake.add_tarball(entry["dist"]["tarball"], alpine_tarball)

    reactivity = [
        version_entry("@vue/reactivity", v, v.encode())
        for v in ("3.0.2", "3.2.20", "3.3.0-beta.1", "2.0.0")
    ]
    fake.add_package(package_document("@vue/reactivity", reactivity, latest="3.2.20"))

    with patch("npmgoproxy.registry.npm.client.safe_get", side_effect=fake.get), \
            patch("npmgoproxy.registry.npm.tarball.safe_get", side_effect=fake.get):
        yield fake
