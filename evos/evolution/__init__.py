"""Evolution engine — free-text goals in, validated source-tree edits out."""
