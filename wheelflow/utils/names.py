# wheelflow/utils/names.py
import re

# reserved device names on Windows, not allowed as a directory name
_RESERVED = {
    "CON", "PRN", "AUX", "NUL",
    *(f"COM{i}" for i in range(1, 10)),
    *(f"LPT{i}" for i in range(1, 10)),
}

_NAME_RE = re.compile(r"^[\w-]+$")
# {{ ... }} placeholders are resolved at run time
_PLACEHOLDER_RE = re.compile(r"\{\{.*?\}\}")
_INPUT_FILENAME_RE = re.compile(r"^[\w\-./\\]+$")
_OUTPUT_FILENAME_RE = re.compile(r"^[\w\-./\\*?\[\]]+$")


def is_valid_name(name) -> bool:
    """component name: word characters and '-', not a reserved device name"""
    if not isinstance(name, str) or name == "":
        return False
    if not _NAME_RE.match(name):
        return False
    return name.upper() not in _RESERVED


def _filename_ok(name, pattern) -> bool:
    if not isinstance(name, str):
        return False
    stripped = _PLACEHOLDER_RE.sub("x", name)
    if stripped == "":
        return False
    return bool(pattern.match(stripped))


def is_valid_input_filename(name) -> bool:
    return _filename_ok(name, _INPUT_FILENAME_RE)


def is_valid_output_filename(name) -> bool:
    """Same as input names plus glob characters."""
    return _filename_ok(name, _OUTPUT_FILENAME_RE)
