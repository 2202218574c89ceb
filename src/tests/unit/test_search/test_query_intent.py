"""Tests for query intent detection and the exact-match cache."""

import pytest

from codegen_daemon.config.settings import SearchConfig
from codegen_daemon.search.index_schema import ALL_SENTINEL
from codegen_daemon.search.intent import (
    ExactMatchCache,
    QueryIntent,
    detect_intent,
    normalize_key,
)

from conftest import make_rest_descriptor, make_schema_descriptor


class TestDetectIntent:
    """Test classification of query shapes."""

    def setup_method(self):
        self.config = SearchConfig()

    def test_empty_query_is_generic_sentinel(self):
        intent = detect_intent("  ", self.config)

        assert intent.intent is QueryIntent.GENERIC
        assert intent.text == ALL_SENTINEL
        assert intent.alpha == self.config.alpha

    @pytest.mark.parametrize("query", ["/api/users/{id}", "users/{id}", "GET /api/users"])
    def test_path_intent(self, query):
        """Path detection wins over a leading HTTP method."""
        intent = detect_intent(query, self.config)

        assert intent.intent is QueryIntent.PATH
        assert intent.text == query
        assert intent.alpha == self.config.intent_alpha.path
        assert intent.method is None

    def test_method_intent_strips_method(self):
        intent = detect_intent("post user", self.config)

        assert intent.intent is QueryIntent.HTTP_METHOD
        assert intent.method == "POST"
        assert intent.text == "user"
        assert intent.alpha == self.config.intent_alpha.http_method

    def test_bare_method_lists_everything(self):
        intent = detect_intent("DELETE", self.config)

        assert intent.method == "DELETE"
        assert intent.text == ALL_SENTINEL

    def test_method_prefix_of_a_word_is_not_a_method(self):
        assert detect_intent("getter", self.config).intent is QueryIntent.GENERIC

    def test_camel_case_strips_hook_prefix(self):
        intent = detect_intent("useGetUser", self.config)

        assert intent.intent is QueryIntent.CAMELCASE
        assert intent.text == "GetUser"
        assert intent.alpha == self.config.intent_alpha.camelcase

    def test_camel_case_without_hook_prefix(self):
        intent = detect_intent("getUserById", self.config)

        assert intent.intent is QueryIntent.CAMELCASE
        assert intent.text == "getUserById"

    def test_generic(self):
        intent = detect_intent("user profile", self.config)

        assert intent.intent is QueryIntent.GENERIC
        assert intent.text == "user profile"


class TestNormalizeKey:
    """Test exact-match key normalization."""

    @pytest.mark.parametrize(
        "value",
        ["/api/users/{id}", "/API/Users/:id/", "api/users/<id>", " api/users/{ID} "],
    )
    def test_path_variants_share_a_key(self, value):
        assert normalize_key(value) == "api/users/{id}"

    def test_operation_id_is_lowercased(self):
        assert normalize_key("getUser") == "getuser"


class TestExactMatchCache:
    """Test incremental maintenance of the exact-match cache."""

    def setup_method(self):
        self.cache = ExactMatchCache()

    def test_keys_for_rest_descriptor(self):
        descriptor = make_rest_descriptor("a", "getUser", path="/api/users/{id}")

        assert ExactMatchCache.keys_for(descriptor) == [
            (ExactMatchCache.OPERATION_ID, "getuser"),
            (ExactMatchCache.PATH, "api/users/{id}"),
        ]

    def test_schemas_have_no_keys(self):
        self.cache.add(make_schema_descriptor("s", "User"))

        assert len(self.cache) == 0
        assert self.cache.lookup("User") == set()

    def test_lookup_by_operation_id_and_url(self):
        self.cache.add(make_rest_descriptor("a", "getUser", path="/api/users/{id}"))

        assert self.cache.lookup("GETUSER") == {"a"}
        assert self.cache.lookup("/api/users/:id", QueryIntent.PATH) == {"a"}

    def test_bare_word_does_not_match_path_template(self):
        self.cache.add(make_rest_descriptor("a", "listPets", path="/pets"))

        assert self.cache.lookup("pets") == set()
        assert self.cache.lookup("pets", QueryIntent.GENERIC) == set()
        assert self.cache.lookup("/pets", QueryIntent.PATH) == {"a"}

    def test_operation_id_is_not_a_path(self):
        self.cache.add(make_rest_descriptor("a", "listPets", path="/pets"))

        assert self.cache.lookup("/listPets", QueryIntent.PATH) == set()

    def test_shared_key_holds_every_id(self):
        self.cache.add_many(
            [
                make_rest_descriptor("a", "listUsers", method="get"),
                make_rest_descriptor("b", "createUser", method="post"),
            ]
        )

        assert self.cache.lookup("/api/users", QueryIntent.PATH) == {"a", "b"}

    def test_readd_replaces_old_keys(self):
        self.cache.add(make_rest_descriptor("a", "getUser"))
        self.cache.add(make_rest_descriptor("a", "getAccount", segment="accounts"))

        assert self.cache.lookup("getUser") == set()
        assert self.cache.lookup("getAccount") == {"a"}

    def test_remove(self):
        self.cache.add_many(
            [
                make_rest_descriptor("a", "listUsers"),
                make_rest_descriptor("b", "createUser", method="post"),
            ]
        )

        self.cache.remove("a")
        self.cache.remove("missing")

        assert self.cache.lookup("listUsers") == set()
        assert self.cache.lookup("/api/users", QueryIntent.PATH) == {"b"}

    def test_clear(self):
        self.cache.add(make_rest_descriptor("a", "getUser"))

        self.cache.clear()

        assert len(self.cache) == 0
        assert self.cache.lookup("getUser") == set()
