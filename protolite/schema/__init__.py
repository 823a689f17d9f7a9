"""Schema source parsing and immutable descriptors."""

from .builder import build_schema as build_schema
from .compat import CompatibilityIssue as CompatibilityIssue
from .compat import check_compatibility as check_compatibility
from .descriptors import *
from .loader import collect_sources as collect_sources
from .loader import load_schema as load_schema
from .loader import load_schema_file as load_schema_file
from .loader import load_schema_sources as load_schema_sources
from .parser import parse as parse
from .types import *
