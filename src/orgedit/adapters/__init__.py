"""Concrete id generators, the YAML property codec and the file host."""
