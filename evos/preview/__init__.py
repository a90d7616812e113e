"""Live preview — run the whole tree as one bundle in an isolated process."""
