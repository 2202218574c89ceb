"""Tests for descriptor extraction from OpenAPI documents."""

import json

from codegen_daemon.descriptors.extraction import (
    camel_case,
    extract_descriptors,
    extract_rest_data,
    sha1,
)
from codegen_daemon.descriptors.models import DescriptorType, VariableLocation


class TestCamelCase:
    """Test identifier normalization."""

    def test_url_based_identifier(self):
        assert camel_case("get_/users/{id}") == "getUsersId"

    def test_snake_and_pascal_case(self):
        assert camel_case("create_pet") == "createPet"
        assert camel_case("GetUserByID") == "getUserById"

    def test_already_camel_case(self):
        assert camel_case("listPets") == "listPets"

    def test_empty(self):
        assert camel_case("") == ""
        assert camel_case("{}/") == ""


class TestExtractRestData:
    """Test extraction of REST operations."""

    def test_one_entry_per_operation(self, sample_openapi_spec):
        operations = extract_rest_data(sample_openapi_spec)

        assert [(op.method, op.request_url) for op in operations] == [
            ("get", "/pets"),
            ("post", "/pets"),
            ("delete", "/pets/{petId}"),
        ]

    def test_get_operation_fields(self, sample_openapi_spec):
        list_pets = extract_rest_data(sample_openapi_spec)[0]

        assert list_pets.operation_id == "listPets"
        assert list_pets.paths == ["pets"]
        assert list_pets.summary == "List pets"
        assert list_pets.response == "PetList"
        assert list_pets.response_type == "application/json"
        assert list_pets.request_body is None
        assert [v.name for v in list_pets.variables] == ["limit"]
        assert list_pets.variables[0].in_ is VariableLocation.QUERY

    def test_example_is_serialized_as_default(self, sample_openapi_spec):
        list_pets = extract_rest_data(sample_openapi_spec)[0]

        assert json.loads(list_pets.response_examples["default"]) == [
            {"id": 1, "name": "Rex"}
        ]

    def test_error_responses_keep_schema_and_media_type(self, sample_openapi_spec):
        list_pets = extract_rest_data(sample_openapi_spec)[0]

        error = list_pets.error_responses["404"]
        assert error.response == "Error"
        assert error.response_type == "application/json"

    def test_only_client_and_server_errors_are_kept(self, sample_openapi_spec):
        list_pets = extract_rest_data(sample_openapi_spec)[0]

        assert list(list_pets.error_responses) == ["404"]

    def test_request_body_for_post(self, sample_openapi_spec):
        create_pet = extract_rest_data(sample_openapi_spec)[1]

        assert create_pet.request_body == "NewPet"
        assert create_pet.content_type == "application/json"
        assert create_pet.response == "Pet"

    def test_missing_operation_id_and_tags(self, sample_openapi_spec):
        """Untagged operations land in 'default' with a synthesized id."""
        delete_pet = extract_rest_data(sample_openapi_spec)[2]

        assert delete_pet.operation_id == "deletePetsPetId"
        assert delete_pet.paths == ["default"]
        assert delete_pet.variables[0].name == "petId"
        assert delete_pet.variables[0].ref == "#/components/schemas/PetId"

    def test_nested_tag_becomes_path_segments(self):
        document = {
            "paths": {
                "/admin/users": {
                    "get": {"operationId": "listAdminUsers", "tags": ["admin/users"]}
                }
            }
        }

        assert extract_rest_data(document)[0].paths == ["admin", "users"]

    def test_referenced_request_body_and_parameters_are_resolved(self):
        document = {
            "paths": {
                "/items": {
                    "post": {
                        "operationId": "createItem",
                        "parameters": [{"$ref": "#/components/parameters/Trace"}],
                        "requestBody": {"$ref": "#/components/requestBodies/Item"},
                    }
                }
            },
            "components": {
                "parameters": {"Trace": {"name": "X-Trace", "in": "header"}},
                "requestBodies": {
                    "Item": {
                        "content": {
                            "application/json": {
                                "schema": {"$ref": "#/components/schemas/Item"}
                            }
                        }
                    }
                },
            },
        }

        create_item = extract_rest_data(document)[0]

        assert create_item.request_body == "Item"
        assert create_item.variables[0].in_ is VariableLocation.HEADER

    def test_non_method_keys_are_ignored(self):
        document = {
            "paths": {
                "/things": {
                    "summary": "Things",
                    "x-internal": True,
                    "get": {"operationId": "listThings"},
                }
            }
        }

        assert [op.operation_id for op in extract_rest_data(document)] == ["listThings"]


class TestExtractDescriptors:
    """Test descriptor ids, names and grouping paths."""

    def test_rest_descriptors_then_schemas(self, sample_openapi_spec):
        descriptors = extract_descriptors("petstore", sample_openapi_spec)

        types = [d.type for d in descriptors]
        assert types == [DescriptorType.REST] * 3 + [DescriptorType.SCHEMA] * 5

    def test_rest_descriptor_identity(self, sample_openapi_spec):
        create_pet = extract_descriptors("petstore", sample_openapi_spec)[1]

        assert create_pet.name == "createPet"
        assert create_pet.source == "petstore"
        assert create_pet.path == "petstore/pets/createPet"
        assert create_pet.id == sha1(
            "petstore_post_/pets_create_pet_application/json_application/json"
        )

    def test_schema_descriptor_identity(self, sample_openapi_spec):
        schemas = [
            d
            for d in extract_descriptors("petstore", sample_openapi_spec)
            if d.is_schema()
        ]
        pet = schemas[0]

        assert pet.name == "Pet"
        assert pet.path == "petstore/components/schemas"
        assert pet.id == sha1("petstore_schema_Pet")
        assert pet.schema.schema["properties"]["id"]["type"] == "integer"

    def test_ids_are_stable_and_source_scoped(self, sample_openapi_spec):
        first = [d.id for d in extract_descriptors("a", sample_openapi_spec)]
        again = [d.id for d in extract_descriptors("a", sample_openapi_spec)]
        other = [d.id for d in extract_descriptors("b", sample_openapi_spec)]

        assert first == again
        assert len(set(first)) == len(first)
        assert not set(first) & set(other)

    def test_empty_document(self):
        assert extract_descriptors("empty", {}) == []
