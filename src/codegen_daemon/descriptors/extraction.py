"""Turn a normalized OpenAPI 3 document into resource descriptors."""

import hashlib
import json
import re
from typing import Any, Dict, List, Optional, Tuple

from ..config.logging import get_logger
from .models import (
    DescriptorType,
    ErrorResponse,
    ResourceDescriptor,
    RestData,
    SchemaData,
    Variable,
    VariableLocation,
    ref_name,
)

logger = get_logger(__name__)

HTTP_METHODS = ("get", "post", "put", "delete", "patch", "options", "head", "trace")
JSON_MEDIA_TYPES = ("application/json", "*/*")

_WORD_RE = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|[0-9]+")


def camel_case(value: str) -> str:
    """Convert an arbitrary identifier to camelCase.

    ``get_/users/{id}`` becomes ``getUsersId`` and ``GetUserByID`` becomes
    ``getUserById``.
    """
    words = _WORD_RE.findall(value or "")
    if not words:
        return ""
    head, tail = words[0].lower(), words[1:]
    return head + "".join(w[:1].upper() + w[1:].lower() for w in tail)


def sha1(value: str) -> str:
    return hashlib.sha1(value.encode("utf-8")).hexdigest()


def _resolve(document: Dict[str, Any], obj: Any) -> Any:
    """Follow a local ``#/...`` reference, returning ``obj`` otherwise."""
    if not isinstance(obj, dict) or "$ref" not in obj:
        return obj
    ref = obj["$ref"]
    if not isinstance(ref, str) or not ref.startswith("#/"):
        return obj

    target: Any = document
    for part in ref[2:].split("/"):
        part = part.replace("~1", "/").replace("~0", "~")
        if not isinstance(target, dict) or part not in target:
            logger.debug("Unresolvable reference", ref=ref)
            return obj
        target = target[part]
    return target


def _schema_ref(media: Dict[str, Any]) -> Optional[str]:
    schema = (media or {}).get("schema") or {}
    if isinstance(schema, dict):
        return ref_name(schema.get("$ref"))
    return None


def _is_json_media(media_type: str) -> bool:
    return media_type in JSON_MEDIA_TYPES or media_type.endswith("+json")


def _extract_variables(
    document: Dict[str, Any], parameters: List[Any]
) -> List[Variable]:
    variables: Dict[Tuple[str, str], Variable] = {}
    for raw in parameters:
        param = _resolve(document, raw)
        if not isinstance(param, dict) or "name" not in param:
            continue
        try:
            location = VariableLocation(param.get("in", ""))
        except ValueError:
            logger.debug(
                "Skipping parameter with unknown location",
                name=param.get("name"),
                location=param.get("in"),
            )
            continue
        schema = param.get("schema") or {}
        ref = schema.get("$ref") if isinstance(schema, dict) else None
        # Operation-level parameters override path-level ones
        variables[(param["name"], location.value)] = Variable(
            name=param["name"], in_=location, ref=ref
        )
    return list(variables.values())


def _extract_examples(media: Dict[str, Any]) -> Dict[str, str]:
    if media.get("examples"):
        return {
            name: json.dumps(example)
            for name, example in media["examples"].items()
        }
    if "example" in media:
        return {"default": json.dumps(media["example"])}
    return {}


def _extract_error_responses(
    document: Dict[str, Any], responses: Dict[str, Any]
) -> Dict[str, ErrorResponse]:
    errors = {}
    for status, raw in responses.items():
        if not str(status).startswith(("4", "5")):
            continue
        response = _resolve(document, raw)
        if not isinstance(response, dict):
            continue
        for media_type, media in (response.get("content") or {}).items():
            if _is_json_media(media_type):
                errors[str(status)] = ErrorResponse(
                    response=_schema_ref(media), response_type=media_type
                )
                break
    return errors


def _success_response(
    document: Dict[str, Any], responses: Dict[str, Any]
) -> Tuple[Optional[str], Optional[str], Dict[str, str]]:
    raw = responses.get("200") or responses.get("201")
    response = _resolve(document, raw) if raw else None
    if not isinstance(response, dict):
        return None, None, {}

    for media_type, media in (response.get("content") or {}).items():
        return _schema_ref(media), media_type, _extract_examples(media or {})
    return None, None, {}


def _request_body(
    document: Dict[str, Any], operation: Dict[str, Any]
) -> Tuple[Optional[str], Optional[str]]:
    body = _resolve(document, operation.get("requestBody"))
    if not isinstance(body, dict):
        return None, None

    content = body.get("content") or {}
    for media_type, media in content.items():
        if _is_json_media(media_type):
            return _schema_ref(media), media_type
    for media_type, media in content.items():
        return _schema_ref(media), media_type
    return None, None


def extract_rest_data(document: Dict[str, Any]) -> List[RestData]:
    """Extract one RestData per (path, method) of the document."""
    operations = []

    for url, raw_item in (document.get("paths") or {}).items():
        path_item = _resolve(document, raw_item)
        if not isinstance(path_item, dict):
            continue
        shared_parameters = path_item.get("parameters") or []

        for method, raw_operation in path_item.items():
            if method.lower() not in HTTP_METHODS:
                continue
            operation = _resolve(document, raw_operation)
            if not isinstance(operation, dict):
                continue

            method = method.lower()
            tags = operation.get("tags") or []
            paths = [p for p in str(tags[0]).split("/") if p] if tags else []
            operation_id = operation.get("operationId") or camel_case(
                f"{method}_{url}"
            )
            responses = operation.get("responses") or {}

            data = RestData(
                method=method,
                request_url=url,
                operation_id=operation_id,
                paths=paths or ["default"],
                variables=_extract_variables(
                    document,
                    list(shared_parameters) + list(operation.get("parameters") or []),
                ),
                summary=operation.get("summary"),
                description=operation.get("description"),
                error_responses=_extract_error_responses(document, responses),
            )
            (
                data.response,
                data.response_type,
                data.response_examples,
            ) = _success_response(document, responses)

            if method not in ("get", "delete"):
                data.request_body, data.content_type = _request_body(
                    document, operation
                )

            operations.append(data)

    return operations


def extract_descriptors(
    source_id: str, document: Dict[str, Any]
) -> List[ResourceDescriptor]:
    """Build the descriptors of one source from its normalized document.

    Args:
        source_id: Identifier of the configured source
        document: Normalized OpenAPI 3 document

    Returns:
        List[ResourceDescriptor]: REST descriptors followed by schema descriptors
    """
    descriptors = []

    for data in extract_rest_data(document):
        name = camel_case(data.operation_id)
        descriptor_id = sha1(
            "_".join(
                [
                    source_id,
                    data.method,
                    data.request_url,
                    data.operation_id,
                    str(data.content_type),
                    str(data.response_type),
                ]
            )
        )
        descriptors.append(
            ResourceDescriptor(
                id=descriptor_id,
                name=name,
                type=DescriptorType.REST,
                source=source_id,
                path="/".join([source_id, *data.paths, name]),
                data=data,
            )
        )

    schemas = (document.get("components") or {}).get("schemas") or {}
    for schema_name, schema in schemas.items():
        descriptors.append(
            ResourceDescriptor(
                id=sha1(f"{source_id}_schema_{schema_name}"),
                name=schema_name,
                type=DescriptorType.SCHEMA,
                source=source_id,
                path=f"{source_id}/components/schemas",
                data=SchemaData(name=schema_name, schema=dict(schema or {})),
            )
        )

    logger.debug(
        "Extracted descriptors", source=source_id, count=len(descriptors)
    )
    return descriptors
