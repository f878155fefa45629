"""Spec file parsing: header, sections, and list records."""

from opswatch.specs.body import SpecBody, TaskRequest
from opswatch.specs.lists import decode_list
from opswatch.specs.models import Operation, SpecFileState, SpecRecord
from opswatch.specs.parser import parse_spec
from opswatch.specs.sections import extract_code_block, extract_section, section_content

__all__ = [
    "Operation",
    "SpecBody",
    "SpecFileState",
    "SpecRecord",
    "TaskRequest",
    "decode_list",
    "extract_code_block",
    "extract_section",
    "parse_spec",
    "section_content",
]
