"""Validates generated source for syntax and structural correctness."""

import ast

from sonos_codegen.errors import EmitError


def validate_python(filename: str, source: str) -> str | None:
    """Check one module for syntax errors and duplicate top-level definitions.

    Returns an error message, or None if the source is valid. The file name
    is only used in messages; every source is checked whatever its suffix.
    """
    try:
        tree = ast.parse(source, filename=filename)
    except SyntaxError as e:
        return f"SyntaxError: {e.msg} (line {e.lineno})"
    duplicates = find_duplicate_definitions(tree)
    if duplicates:
        return f"duplicate definitions: {', '.join(duplicates)}"
    return None


def find_duplicate_definitions(tree: ast.Module) -> list[str]:
    """Names bound more than once by top-level class or function definitions."""
    seen = set()
    duplicates = []
    for node in tree.body:
        if isinstance(node, (ast.ClassDef, ast.FunctionDef)):
            if node.name in seen and node.name not in duplicates:
                duplicates.append(node.name)
            seen.add(node.name)
    return duplicates


def check_artifact(filename: str, source: str) -> None:
    """Raise EmitError if the rendered module would not load."""
    error = validate_python(filename, source)
    if error:
        raise EmitError(f"generated source is invalid: {error}", entity=filename)
