"""npmgoproxy: serve npm registry packages over the Go module proxy protocol."""

__version__ = "0.1.0"
