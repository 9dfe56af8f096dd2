"""Download a version tarball to disk while verifying its checksums."""

from __future__ import annotations

import base64
import hashlib
import logging
import os
from typing import Optional

import requests

from ...common.http_client import safe_get
from ...common.logging_utils import safe_url, Timer
from ...constants import Constants
from ...exceptions import IntegrityError, UpstreamError
from .models import DistributionInfo

logger = logging.getLogger(__name__)

_SRI_ALGORITHMS = {"sha512": hashlib.sha512, "sha384": hashlib.sha384, "sha256": hashlib.sha256}


def _parse_integrity(integrity: Optional[str]):
    """Return (algorithm, expected base64 digest) for the strongest SRI entry we support."""
    if not integrity:
        return None
    best = None
    for token in integrity.split():
        algorithm, _, digest = token.partition("-")
        if algorithm not in _SRI_ALGORITHMS or not digest:
            continue
        if best is None or list(_SRI_ALGORITHMS).index(algorithm) < list(_SRI_ALGORITHMS).index(best[0]):
            best = (algorithm, digest.split("?", 1)[0])
    return best


class TarballFetcher:
    """Streams tarballs to disk; the body is never held in memory as a whole."""

    def __init__(
        self,
        timeout: float = Constants.REQUEST_TIMEOUT,
        chunk_size: int = Constants.DOWNLOAD_CHUNK_SIZE,
    ):
        self.timeout = timeout
        self.chunk_size = chunk_size

    def fetch(self, dist: DistributionInfo, destination: str) -> None:
        """Download ``dist.tarball`` to ``destination`` and verify it.

        The hex SHA-1 ``shasum`` must match exactly. When the registry also
        declares an SRI ``integrity`` string, that digest must match too.
        On any failure the partially written file is removed before raising.

        Raises:
            UpstreamError: Transport failure or non-2xx status.
            IntegrityError: A declared digest does not match the bytes.
        """
        if not dist.tarball:
            raise UpstreamError("distribution has no tarball URL")

        res = safe_get(
            dist.tarball,
            context="tarball",
            timeout=self.timeout,
            stream=True,
            headers={"User-Agent": Constants.USER_AGENT},
        )
        with res:
            if res.status_code != 200:
                raise UpstreamError(
                    f"bad status downloading {safe_url(dist.tarball)}: {res.status_code}",
                    res.status_code,
                )

            sri = _parse_integrity(dist.integrity)
            sha1 = hashlib.sha1()
            sri_hash = _SRI_ALGORITHMS[sri[0]]() if sri else None
            size = 0
            try:
                with Timer() as timer, open(destination, "wb") as out:
                    for chunk in res.iter_content(chunk_size=self.chunk_size):
                        if not chunk:
                            continue
                        out.write(chunk)
                        sha1.update(chunk)
                        if sri_hash is not None:
                            sri_hash.update(chunk)
                        size += len(chunk)
            except requests.RequestException as exc:
                _discard(destination)
                raise UpstreamError(f"download of {safe_url(dist.tarball)} interrupted: {exc}") from exc
            except OSError:
                _discard(destination)
                raise

        actual = sha1.hexdigest()
        if actual != dist.shasum:
            _discard(destination)
            raise IntegrityError("shasum", dist.shasum, actual)
        if sri is not None:
            actual_sri = base64.b64encode(sri_hash.digest()).decode("ascii")
            if actual_sri != sri[1]:
                _discard(destination)
                raise IntegrityError(sri[0], sri[1], actual_sri)

        logger.debug("Downloaded %d bytes from %s in %d ms", size, safe_url(dist.tarball), timer.duration_ms())


def _discard(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
