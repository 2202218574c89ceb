"""Resource descriptor models shared by search, sync and the HTTP daemon."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class DescriptorType(str, Enum):
    """Kinds of resources a descriptor can point at."""

    REST = "rest"
    SCHEMA = "schema"


class VariableLocation(str, Enum):
    """Parameter locations in OpenAPI."""

    PATH = "path"
    QUERY = "query"
    HEADER = "header"
    COOKIE = "cookie"


def ref_name(ref: Optional[str]) -> Optional[str]:
    """Return the trailing component of a ``$ref`` pointer."""
    if not ref:
        return None
    return ref.rsplit("/", 1)[-1]


@dataclass
class Variable:
    """A path, query, header or cookie parameter of an operation."""

    name: str
    in_: VariableLocation
    ref: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {"name": self.name, "in": self.in_.value}
        if self.ref is not None:
            result["ref"] = self.ref
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Variable":
        return cls(
            name=data["name"],
            in_=VariableLocation(data["in"]),
            ref=data.get("ref"),
        )


@dataclass
class ErrorResponse:
    """Schema returned for a non-2xx status code."""

    response: Optional[str] = None
    response_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"response": self.response, "responseType": self.response_type}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ErrorResponse":
        return cls(
            response=data.get("response"),
            response_type=data.get("responseType"),
        )


@dataclass
class RestData:
    """Payload of a REST operation descriptor."""

    method: str
    request_url: str
    operation_id: str
    paths: List[str] = field(default_factory=list)
    variables: List[Variable] = field(default_factory=list)
    request_body: Optional[str] = None
    content_type: Optional[str] = None
    response: Optional[str] = None
    response_type: Optional[str] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    response_examples: Dict[str, str] = field(default_factory=dict)
    error_responses: Dict[str, ErrorResponse] = field(default_factory=dict)

    def referenced_types(self) -> List[str]:
        """Names of the schemas in the request, the success response and variables.

        Error response schemas are not included.

        Returns:
            List[str]: Distinct schema names in first-seen order
        """
        names = [self.request_body, self.response]
        names.extend(ref_name(v.ref) for v in self.variables)

        seen: List[str] = []
        for name in names:
            if name and name not in seen:
                seen.append(name)
        return seen

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "method": self.method,
            "requestUrl": self.request_url,
            "operationId": self.operation_id,
            "paths": list(self.paths),
            "variables": [v.to_dict() for v in self.variables],
        }
        optional = {
            "requestBody": self.request_body,
            "contentType": self.content_type,
            "response": self.response,
            "responseType": self.response_type,
            "summary": self.summary,
            "description": self.description,
        }
        result.update({k: v for k, v in optional.items() if v is not None})
        if self.response_examples:
            result["responseExamples"] = dict(self.response_examples)
        if self.error_responses:
            result["errorResponses"] = {
                status: err.to_dict()
                for status, err in self.error_responses.items()
            }
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RestData":
        return cls(
            method=data["method"],
            request_url=data.get("requestUrl", ""),
            operation_id=data["operationId"],
            paths=list(data.get("paths") or []),
            variables=[
                Variable.from_dict(v) for v in data.get("variables") or []
            ],
            request_body=data.get("requestBody"),
            content_type=data.get("contentType"),
            response=data.get("response"),
            response_type=data.get("responseType"),
            summary=data.get("summary"),
            description=data.get("description"),
            response_examples=dict(data.get("responseExamples") or {}),
            error_responses={
                status: ErrorResponse.from_dict(err)
                for status, err in (data.get("errorResponses") or {}).items()
            },
        )


@dataclass
class SchemaData:
    """Payload of a schema descriptor."""

    name: str
    schema: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "schema": self.schema}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SchemaData":
        return cls(name=data["name"], schema=dict(data.get("schema") or {}))


DescriptorData = Union[RestData, SchemaData]


@dataclass
class ResourceDescriptor:
    """One REST operation or schema, the unit of indexing and search.

    Descriptors are replaced by reference, never mutated field by field.
    ``last_accessed`` is epoch milliseconds; ``None`` means never accessed.
    """

    id: str
    name: str
    type: DescriptorType
    source: str
    path: str
    data: DescriptorData
    last_accessed: Optional[int] = None

    def __post_init__(self):
        self.type = DescriptorType(self.type)
        expected = RestData if self.type is DescriptorType.REST else SchemaData
        if not isinstance(self.data, expected):
            raise TypeError(
                f"Descriptor {self.id} of type '{self.type.value}' "
                f"requires {expected.__name__} data"
            )

    def is_rest(self) -> bool:
        return self.type is DescriptorType.REST

    def is_schema(self) -> bool:
        return self.type is DescriptorType.SCHEMA

    @property
    def rest(self) -> RestData:
        """REST payload; raises if this is not a REST descriptor."""
        if not self.is_rest():
            raise TypeError(f"Descriptor {self.id} is not a REST operation")
        return self.data

    @property
    def schema(self) -> SchemaData:
        """Schema payload; raises if this is not a schema descriptor."""
        if not self.is_schema():
            raise TypeError(f"Descriptor {self.id} is not a schema")
        return self.data

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the daemon API's wire names."""
        result = {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "source": self.source,
            "path": self.path,
            "data": self.data.to_dict(),
        }
        if self.last_accessed is not None:
            result["lastAccessed"] = self.last_accessed
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResourceDescriptor":
        descriptor_type = DescriptorType(data["type"])
        if descriptor_type is DescriptorType.REST:
            payload = RestData.from_dict(data["data"])
        elif descriptor_type is DescriptorType.SCHEMA:
            payload = SchemaData.from_dict(data["data"])
        else:
            raise ValueError(f"Unknown descriptor type: {descriptor_type}")

        return cls(
            id=data["id"],
            name=data["name"],
            type=descriptor_type,
            source=data["source"],
            path=data["path"],
            data=payload,
            last_accessed=data.get("lastAccessed"),
        )
