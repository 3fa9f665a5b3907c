"""g2h bridge code generator."""

from .codec import CodecBuilder as CodecBuilder
from .config import GeneratorConfig as GeneratorConfig
from .config import parse_parameter as parse_parameter
from .errors import *
from .index import DescriptorIndex as DescriptorIndex
from .plugin import GeneratedFile as GeneratedFile
from .plugin import GenerationRequest as GenerationRequest
from .plugin import GenerationResult as GenerationResult
from .plugin import generate as generate
from .resolver import EnumResolver as EnumResolver
from .resolver import build_table as build_table
from .routes import RouteBuilder as RouteBuilder
from .routes import route_path as route_path
from .types import *
