"""depedit - format-preserving dependency editing for Cargo-style manifests."""

__version__ = "0.1.0"
