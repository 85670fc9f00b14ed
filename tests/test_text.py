import pytest

from recipebook.text import slugify


@pytest.mark.parametrize(
    "name, slug",
    [
        ("Country Sourdough", "country-sourdough"),
        ("  Pain  au   Chocolat ", "pain-au-chocolat"),
        ("Brownies (Fork)", "brownies-fork"),
        ("Mom's -- best -- pie", "moms-best-pie"),
        ("", ""),
    ],
)
def test_slugify(name, slug):
    assert slugify(name) == slug
