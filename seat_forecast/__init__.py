"""UK general election seat forecast from Manifold constituency markets."""

__version__ = '1.0.0'
