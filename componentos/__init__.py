"""componentos - registry, relationship graph and version control for modifiable UI components."""

__version__ = "0.1.0"
