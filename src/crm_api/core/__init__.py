"""Domain primitives shared by every feature."""
