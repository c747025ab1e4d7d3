"""Tests for catalog data models."""

from apkcat.models import App, Catalog, Variant


def test_variant_url():
    """Test the download URL joins repository address and file name."""
    v = Variant(version_name="1", version_code=1, apk_name="a.apk", origin_repo_url="https://r.example/repo/")
    assert v.url == "https://r.example/repo/a.apk"


def test_app_copy_is_independent():
    """Test copies do not share the variant list."""
    app = App(package_name="p", variants=[Variant(version_name="1", version_code=1)])
    clone = app.copy()
    clone.variants.append(Variant(version_name="2", version_code=2))
    assert len(app.variants) == 1


class TestCatalog:
    """Tests for Catalog."""

    def test_sorted_by_package_name(self):
        """Test iteration follows package order regardless of insertion."""
        catalog = Catalog({"b": App(package_name="b"), "a": App(package_name="a")})
        assert [app.package_name for app in catalog] == ["a", "b"]
        assert "a" in catalog
        assert catalog.get("c") is None

    def test_dict_round_trip(self):
        """Test to_dict/from_dict preserve apps and variant order."""
        catalog = Catalog({"p": App(package_name="p", variants=[
            Variant(version_name="5", version_code=5, origin_repo_url="R1"),
            Variant(version_name="5", version_code=5, origin_repo_url="R2"),
        ])})
        restored = Catalog.from_dict(catalog.to_dict())
        assert restored == catalog
        assert [v.origin_repo_url for v in restored["p"].variants] == ["R1", "R2"]
