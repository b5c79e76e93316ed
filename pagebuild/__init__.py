"""pagebuild front-end asset pipeline.

This package compiles a site's stylesheets, scripts and page templates,
optimizes its images and fonts, and bundles everything for production.
During development it serves the project with file watching and live
reload.

The main entry point is the CLI module, which exposes the ``clean``,
``build`` and ``dev`` pipelines.

Architecture:
- config: Default configuration merged with an optional pagebuild.yaml.
- files: File groups (pattern, base, cwd, destination) per asset class.
- processors: One implementation per transformation capability.
- tasks / pipeline: Tasks and their series/parallel composition.
- watch / server / reload: Watching, preview serving and live reload.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
