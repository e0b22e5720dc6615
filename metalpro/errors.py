from __future__ import annotations


class MetalproError(Exception):
    """Base class for failures that abort a whole operation."""


class BOMStructureError(MetalproError, ValueError):
    pass


class CatalogError(MetalproError, ValueError):
    pass


class InvalidConfigurationError(MetalproError, ValueError):
    def __init__(self, problems: list[str]) -> None:
        super().__init__("; ".join(problems))
        self.problems = problems


class ProjectNotFoundError(MetalproError, LookupError):
    pass
