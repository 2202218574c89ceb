"""Pytest configuration and shared fixtures."""

from typing import Any, Dict, List, Optional

import pytest

from codegen_daemon.config.settings import SearchConfig
from codegen_daemon.descriptors.models import (
    DescriptorType,
    ResourceDescriptor,
    RestData,
    SchemaData,
)
from codegen_daemon.search.search_service import SearchService

FIXED_NOW = 1_700_000_000_000
HOUR_MS = 60 * 60 * 1000


def make_rest_descriptor(
    id: str,
    operation_id: str,
    method: str = "get",
    path: Optional[str] = None,
    segment: str = "users",
    summary: str = "",
    description: str = "",
    source: str = "test-api",
    last_accessed: Optional[int] = FIXED_NOW,
    request_body: Optional[str] = None,
    response: Optional[str] = None,
) -> ResourceDescriptor:
    """Build a REST descriptor the way the sync pipeline would."""
    url = path or f"/api/{segment}"
    return ResourceDescriptor(
        id=id,
        name=operation_id,
        type=DescriptorType.REST,
        source=source,
        path=path or f"{source}/{segment}/{operation_id}",
        data=RestData(
            method=method,
            request_url=url,
            operation_id=operation_id,
            paths=[segment],
            summary=summary,
            description=description,
            request_body=request_body,
            response=response,
        ),
        last_accessed=last_accessed,
    )


def make_schema_descriptor(
    id: str,
    name: str,
    source: str = "test-api",
    schema: Optional[Dict[str, Any]] = None,
    last_accessed: Optional[int] = None,
) -> ResourceDescriptor:
    return ResourceDescriptor(
        id=id,
        name=name,
        type=DescriptorType.SCHEMA,
        source=source,
        path=f"{source}/components/schemas",
        data=SchemaData(name=name, schema=schema or {"type": "object"}),
        last_accessed=last_accessed,
    )


@pytest.fixture
def clock() -> Dict[str, int]:
    """Mutable fixed clock; tests advance ``clock['now']``."""
    return {"now": FIXED_NOW}


@pytest.fixture
def search_service(clock) -> SearchService:
    """Search service with default tuning and a fixed clock."""
    return SearchService(SearchConfig(), clock=lambda: clock["now"])


@pytest.fixture
def user_descriptors() -> List[ResourceDescriptor]:
    return [
        make_rest_descriptor(
            "get-user",
            "getUser",
            summary="Retrieve user data",
            description="Fetches a single user by ID",
            response="User",
        ),
        make_rest_descriptor(
            "fetch-profile",
            "fetchProfile",
            segment="profiles",
            summary="Get profile information",
            description="Get user profile information from the database",
        ),
        make_schema_descriptor("schema-user", "User"),
    ]


@pytest.fixture
def sample_openapi_spec() -> Dict[str, Any]:
    """Provide a small OpenAPI 3.0 document for extraction tests."""
    return {
        "openapi": "3.0.0",
        "info": {"title": "Pet Store", "version": "1.0.0"},
        "paths": {
            "/pets": {
                "get": {
                    "operationId": "listPets",
                    "tags": ["pets"],
                    "summary": "List pets",
                    "parameters": [
                        {
                            "name": "limit",
                            "in": "query",
                            "schema": {"type": "integer"},
                        }
                    ],
                    "responses": {
                        "200": {
                            "description": "A list of pets",
                            "content": {
                                "application/json": {
                                    "schema": {"$ref": "#/components/schemas/PetList"},
                                    "example": [{"id": 1, "name": "Rex"}],
                                }
                            },
                        },
                        "404": {
                            "description": "Not found",
                            "content": {
                                "application/json": {
                                    "schema": {"$ref": "#/components/schemas/Error"}
                                }
                            },
                        },
                        "default": {
                            "description": "Error",
                            "content": {
                                "application/json": {
                                    "schema": {"$ref": "#/components/schemas/Error"}
                                }
                            },
                        },
                    },
                },
                "post": {
                    "operationId": "create_pet",
                    "tags": ["pets"],
                    "requestBody": {
                        "content": {
                            "application/json": {
                                "schema": {"$ref": "#/components/schemas/NewPet"}
                            }
                        }
                    },
                    "responses": {
                        "201": {
                            "description": "Created",
                            "content": {
                                "application/json": {
                                    "schema": {"$ref": "#/components/schemas/Pet"}
                                }
                            },
                        }
                    },
                },
            },
            "/pets/{petId}": {
                "parameters": [
                    {
                        "name": "petId",
                        "in": "path",
                        "required": True,
                        "schema": {"$ref": "#/components/schemas/PetId"},
                    }
                ],
                "delete": {
                    "responses": {"204": {"description": "Deleted"}},
                },
            },
        },
        "components": {
            "schemas": {
                "Pet": {"type": "object", "properties": {"id": {"type": "integer"}}},
                "NewPet": {"type": "object"},
                "PetList": {"type": "array", "items": {"$ref": "#/components/schemas/Pet"}},
                "PetId": {"type": "integer"},
                "Error": {"type": "object", "description": "Error payload"},
            }
        },
    }
