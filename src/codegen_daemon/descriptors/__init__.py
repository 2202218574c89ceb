"""Resource descriptor model and OpenAPI extraction."""

from .extraction import camel_case, extract_descriptors
from .models import (
    DescriptorType,
    ErrorResponse,
    ResourceDescriptor,
    RestData,
    SchemaData,
    Variable,
    VariableLocation,
)

__all__ = [
    "DescriptorType",
    "ErrorResponse",
    "ResourceDescriptor",
    "RestData",
    "SchemaData",
    "Variable",
    "VariableLocation",
    "camel_case",
    "extract_descriptors",
]
