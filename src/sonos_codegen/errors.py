"""Error types raised by the schema loader and the code emitter.

Every error is fatal for a run. The CLI turns them into a non-zero exit
code and a one-line diagnostic.
"""


class CodegenError(Exception):
    """Base class for all generator failures."""


class LoadError(CodegenError):
    """An input document is malformed, inconsistent or references something undefined."""

    def __init__(self, message: str, document: str | None = None, path: str | None = None, entity: str | None = None):
        self.message = message
        self.document = document
        self.path = path
        self.entity = entity
        super().__init__(self._render())

    def _render(self) -> str:
        parts = [p for p in (self.document, self.path) if p]
        parts.append(self.message)
        return ": ".join(parts)


class EmitError(CodegenError):
    """The emitter could not render a definition for a schema entity."""

    def __init__(self, message: str, entity: str | None = None):
        self.message = message
        self.entity = entity
        super().__init__(f"{entity}: {message}" if entity else message)
