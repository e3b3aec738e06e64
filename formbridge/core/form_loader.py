"""
Form definition files.

Forms can be authored as Markdown with a YAML frontmatter header. The
header holds the structured definition; the Markdown body becomes the
form description when the header does not give one.

Format:
    ---
    title: Volunteer Signup
    airtableBaseId: appXXXX
    airtableTableId: tblXXXX
    questions:
      - questionKey: name
        airtableFieldId: fldName
        label: "Your name"
        type: singleLineText
        required: true
    ---
    Thanks for helping out! ...

Plain ``.json``, ``.yaml`` and ``.yml`` definitions are accepted too.
"""

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from formbridge.core.schema import FormDefinition

logger = logging.getLogger(__name__)

FORM_FILE_SUFFIXES = (".md", ".json", ".yaml", ".yml")


class FormFileError(Exception):
    """Raised when a form file cannot be read or is not a valid definition."""


def parse_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Parse YAML frontmatter from a form definition string.

    Returns:
        A tuple of (frontmatter_dict, markdown_body).
        frontmatter_dict is empty if no valid frontmatter is found.
    """
    stripped = content.strip()
    if not stripped.startswith("---"):
        return {}, content

    # Find the closing --- delimiter
    end_index = stripped.find("---", 3)
    if end_index == -1:
        return {}, content

    yaml_block = stripped[3:end_index].strip()
    markdown_body = stripped[end_index + 3:].strip()

    try:
        frontmatter = yaml.safe_load(yaml_block)
    except yaml.YAMLError as e:
        logger.warning("Failed to parse YAML frontmatter: %s", e)
        return {}, content

    if not isinstance(frontmatter, dict):
        logger.warning("Frontmatter is not a dict, ignoring")
        return {}, content
    return frontmatter, markdown_body


def parse_form_document(content: str, suffix: str = ".md") -> FormDefinition:
    """Parse a form definition from file content.

    Raises:
        FormFileError: If the content is not a valid form definition.
    """
    if suffix == ".md":
        data, body = parse_frontmatter(content)
        if not data:
            raise FormFileError("Form file has no YAML frontmatter")
        if body and not data.get("description"):
            data["description"] = body
    else:
        try:
            data = json.loads(content) if suffix == ".json" else yaml.safe_load(content)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise FormFileError(f"Could not parse form file: {e}") from e
        if not isinstance(data, dict):
            raise FormFileError("Form file must contain a mapping")

    try:
        return FormDefinition.model_validate(data)
    except ValidationError as e:
        raise FormFileError(f"Invalid form definition: {e}") from e


def load_form_file(path: Path) -> FormDefinition:
    """Load a single form definition file."""
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise FormFileError(f"Could not read '{path}': {e}") from e
    return parse_form_document(content, path.suffix.lower())


def load_forms_dir(directory: Path) -> dict[str, FormDefinition]:
    """Load every form file in a directory, keyed by file stem.

    Invalid files are logged and skipped.
    """
    forms: dict[str, FormDefinition] = {}
    if not directory.is_dir():
        logger.warning("Forms directory '%s' does not exist", directory)
        return forms

    for path in sorted(directory.iterdir()):
        if path.suffix.lower() not in FORM_FILE_SUFFIXES:
            continue
        try:
            forms[path.stem] = load_form_file(path)
        except FormFileError as e:
            logger.warning("Skipping form file '%s': %s", path.name, e)
    return forms
