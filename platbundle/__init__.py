"""platbundle: build a project and deliver one native installation package."""

__version__ = "0.1.0"
