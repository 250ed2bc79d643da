"""WLD binary format layer: header, string hash, fragments, document."""
