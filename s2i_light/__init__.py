"""s2i-light - lightweight source-to-image builds on podman or docker.

This package injects application source into a builder image by
synthesizing a build definition and handing it to a container engine.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
