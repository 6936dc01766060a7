"""Protocol layer: field framing, response parsing, and command builders."""

from .framing import FieldFramer
from .parser import Field, parse_field, parse_fields
from .commands import Command, Query, build_command, build_query, encode_field
