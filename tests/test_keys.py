"""Tests for cache key construction and endpoint templates."""

from reqcache import build_cache_key
from reqcache.keys import fill_path, missing_path_params, template_params


class TestBuildCacheKey:
    """Tests for build_cache_key."""

    def test_structurally_equal_inputs_collide(self) -> None:
        """Test that mapping order does not change the key."""
        a = build_cache_key(query={"a": 1, "b": 2}, params={"id": "7"})
        b = build_cache_key(query={"b": 2, "a": 1}, params={"id": "7"})
        assert a == b

    def test_nested_values_are_canonical(self) -> None:
        a = build_cache_key(query={"filter": {"x": 1, "y": [1, 2]}})
        b = build_cache_key(query={"filter": {"y": [1, 2], "x": 1}})
        assert a == b

    def test_different_values_do_not_collide(self) -> None:
        assert build_cache_key(params={"id": "1"}) != build_cache_key(params={"id": "2"})
        assert build_cache_key(params={"id": 1}) != build_cache_key(params={"id": "1"})

    def test_components_are_labelled(self) -> None:
        """Test that the same dict in different components gives different keys."""
        component = {"id": "1"}
        keys = {
            build_cache_key(query=component),
            build_cache_key(params=component),
            build_cache_key(headers=component),
        }
        assert len(keys) == 3

    def test_headers_are_part_of_the_key(self) -> None:
        plain = build_cache_key(params={"id": "1"})
        with_header = build_cache_key(params={"id": "1"}, headers={"X-Locale": "de"})
        assert plain != with_header

    def test_absent_and_empty_components_differ(self) -> None:
        assert build_cache_key() != build_cache_key(query={})

    def test_prefix(self) -> None:
        assert build_cache_key() == "CACHEKEY-"
        assert build_cache_key(params={"username": "dase"}) == (
            'CACHEKEY-params={"username":"dase"}'
        )


class TestEndpointTemplates:
    """Tests for template parsing and filling."""

    def test_template_params(self) -> None:
        assert template_params("/orgs/:org/users/:username") == ["org", "username"]
        assert template_params("/users") == []

    def test_fill_path_quotes_values(self) -> None:
        assert fill_path("/users/:username", {"username": "dase"}) == "/users/dase"
        assert fill_path("/files/:name", {"name": "a b/c"}) == "/files/a%20b%2Fc"

    def test_fill_path_leaves_unknown_placeholders(self) -> None:
        assert fill_path("/a/:x/:y", {"x": 1}) == "/a/1/:y"

    def test_fill_path_without_params(self) -> None:
        assert fill_path("/users", None) == "/users"

    def test_missing_path_params(self) -> None:
        endpoint = "/orgs/:org/users/:username"
        assert missing_path_params(endpoint, {"org": "a", "username": "b"}) == []
        assert missing_path_params(endpoint, {"org": "a"}) == ["username"]
        assert missing_path_params(endpoint, None) == ["org", "username"]
        assert missing_path_params(endpoint, {"org": "a", "username": None}) == [
            "username"
        ]

    def test_supplied_none_param_is_missing(self) -> None:
        """Test that a None value is invalid even when the template lacks it."""
        assert missing_path_params("/users", {"page": None}) == ["page"]
