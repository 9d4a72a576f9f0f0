import pytest

from utils.slug import MAX_SLUG_LENGTH, slug_candidate, slugify_shop_name


@pytest.mark.parametrize("name,expected", [
    ("Panaderia Nino", "panaderia-nino"),
    ("Panadería Niño", "panaderia-nino"),
    ("  Mi   Tienda!! ", "mi-tienda"),
    ("foo_bar--baz", "foo-bar-baz"),
    ("---", ""),
    ("", ""),
])
def test_slugify_shop_name(name, expected):
    assert slugify_shop_name(name) == expected


def test_slug_is_truncated_without_trailing_dash():
    slug = slugify_shop_name("a" * 59 + " bcd")
    assert len(slug) <= MAX_SLUG_LENGTH
    assert not slug.endswith("-")


def test_slug_candidates():
    assert [slug_candidate("foo", attempt) for attempt in range(3)] == ["foo", "foo-2", "foo-3"]
