"""Build orchestration module.

This module handles:
- Source acquisition into a staging area
- Builder image user resolution
- Artifact extraction for incremental builds
- Build definition synthesis and serialization
- Running the engine build
"""

from s2i_light.builds.models import BuildOptions, BuildRequest, EnvAssignment, StagingArea

__all__ = ["BuildOptions", "BuildRequest", "EnvAssignment", "StagingArea"]

# Lazy imports for submodules to avoid circular imports
# Access via s2i_light.builds.service, etc.
