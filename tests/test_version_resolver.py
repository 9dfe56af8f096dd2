"""Tests for npm range resolution."""

from npmgoproxy.versioning.resolver import pick_matching

CANDIDATES = ["v2.0.0", "v3.0.2", "v3.1.0", "v3.2.20", "v3.3.0-beta.1", "v4.0.0"]


class TestPickMatching:
    """Tests for picking the highest matching candidate."""

    def test_caret(self):
        """Caret ranges stay within the major version."""
        assert pick_matching("^3.0.2", CANDIDATES) == "v3.2.20"

    def test_tilde(self):
        """Tilde ranges stay within the minor version."""
        assert pick_matching("~3.1.0", CANDIDATES) == "v3.1.0"

    def test_exact(self):
        assert pick_matching("3.0.2", CANDIDATES) == "v3.0.2"

    def test_star_and_latest(self):
        """Wildcards pick the highest stable version."""
        assert pick_matching("*", CANDIDATES) == "v4.0.0"
        assert pick_matching("latest", CANDIDATES) == "v4.0.0"

    def test_x_range(self):
        assert pick_matching("3.x", CANDIDATES) == "v3.2.20"

    def test_prerelease_only_when_named(self):
        """Pre-releases are considered only when the range names one."""
        assert pick_matching(">=3.2.20", CANDIDATES) == "v4.0.0"
        assert pick_matching("3.3.0-beta.1", CANDIDATES) == "v3.3.0-beta.1"

    def test_no_match(self):
        assert pick_matching("^9.0.0", CANDIDATES) is None

    def test_unsupported_range(self):
        """Git URLs and file specs cannot be resolved."""
        assert pick_matching("github:user/repo", CANDIDATES) is None
        assert pick_matching("file:../local", CANDIDATES) is None

    def test_returns_candidate_as_given(self):
        """Raw candidates come back unprefixed."""
        assert pick_matching("^1.0.0", ["1.0.0", "1.2.0"]) == "1.2.0"
