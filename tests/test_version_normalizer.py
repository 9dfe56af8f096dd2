"""Tests for canonical version strings and their ordering."""

import random

from npmgoproxy.versioning.semver import compare, is_valid, major, normalize, precedence, sort_key


class TestNormalize:
    """Tests for the v-prefix normalization."""

    def test_adds_prefix(self):
        """Bare npm versions gain the v prefix."""
        assert normalize("3.3.3") == "v3.3.3"

    def test_prefixed_passes_through(self):
        """Already-prefixed versions are unchanged."""
        assert normalize("v3.3.3") == "v3.3.3"

    def test_idempotent(self):
        """Normalizing twice is the same as normalizing once."""
        for raw in ("1.0.0", "v2.0.0-rc.1", "0.0.1+build.5", "not-a-version", ""):
            assert normalize(normalize(raw)) == normalize(raw)

    def test_bare_and_prefixed_compare_equal(self):
        """3.3.3 and v3.3.3 denote the same version."""
        assert compare("3.3.3", "v3.3.3") == 0
        assert compare(normalize("3.3.3"), normalize("v3.3.3")) == 0


class TestOrdering:
    """Tests for semver precedence ordering."""

    def test_numeric_not_lexical(self):
        """3.10.0 sorts after 3.9.0."""
        assert compare("v3.10.0", "v3.9.0") == 1
        assert sorted(["v3.10.0", "v3.9.0"], key=sort_key) == ["v3.9.0", "v3.10.0"]

    def test_prerelease_before_release(self):
        """A pre-release ranks below its release."""
        assert compare("v1.0.0-alpha", "v1.0.0") == -1

    def test_semver_spec_precedence_chain(self):
        """The precedence example from semver.org holds."""
        chain = [
            "v1.0.0-alpha", "v1.0.0-alpha.1", "v1.0.0-alpha.beta", "v1.0.0-beta",
            "v1.0.0-beta.2", "v1.0.0-beta.11", "v1.0.0-rc.1", "v1.0.0",
        ]
        shuffled = chain[:]
        random.Random(7).shuffle(shuffled)
        assert sorted(shuffled, key=sort_key) == chain

    def test_build_metadata_ignored_for_precedence(self):
        """Build metadata does not change precedence but ties still break deterministically."""
        assert compare("v1.0.0+build.1", "v1.0.0+build.2") == 0
        assert sorted(["v1.0.0+b", "v1.0.0+a"], key=sort_key) == ["v1.0.0+a", "v1.0.0+b"]

    def test_invalid_versions_sort_first(self):
        """Non-semver strings rank below every valid version."""
        assert sorted(["v1.0.0", "vgarbage", "v0.0.1"], key=sort_key) == ["vgarbage", "v0.0.1", "v1.0.0"]
        assert precedence("vgarbage") < precedence("v0.0.0")

    def test_total_order(self):
        """No two distinct strings share a sort key."""
        values = ["v1.0.0", "v1.0.0+x", "vjunk", "vjunk2", "v1.0.0-rc.1"]
        assert len({sort_key(v) for v in values}) == len(values)


class TestMajor:
    """Tests for major component extraction."""

    def test_major(self):
        assert major("v3.3.3") == "v3"
        assert major("3.3.3") == "v3"
        assert major("v0.1.0") == "v0"

    def test_major_of_invalid(self):
        assert major("vlatest") == ""
        assert is_valid("vlatest") is False
