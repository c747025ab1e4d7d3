"""Tests for the index parser module."""

import io
import json

import pytest

from apkcat.errors import FormatError, FormatErrorKind
from apkcat.index.parser import normalize_hex, parse_index, split_comma, to_int

from conftest import build_container


LEGACY_XML = """<?xml version="1.0" encoding="utf-8"?>
<fdroid>
  <repo name="Legacy" url="https://legacy.example/repo" timestamp="1528184950" version="12" maxage="7">
    <description>Old repo</description>
  </repo>
  <application id="org.legacy.app">
    <id>org.legacy.app</id>
    <added>2015-10-01</added>
    <lastupdated>2016-01-02</lastupdated>
    <name>Legacy &amp; Co</name>
    <summary> Old app </summary>
    <desc>&lt;p&gt;Hello&lt;/p&gt;</desc>
    <license>MIT</license>
    <categories>Games,Science &amp; Education</categories>
    <web>https://legacy.example</web>
    <marketversion>1.1</marketversion>
    <marketvercode>11</marketvercode>
    <package>
      <version>1.0</version>
      <versioncode>10</versioncode>
      <apkname>org.legacy.app_10.apk</apkname>
      <hash type="sha256">AABB</hash>
      <size>2048</size>
      <sdkver>8</sdkver>
      <nativecode>armeabi,x86</nativecode>
      <permissions>INTERNET,CAMERA</permissions>
    </package>
    <package>
      <version>1.1</version>
      <versioncode>11</versioncode>
      <apkname>org.legacy.app_11.apk</apkname>
      <sdkver>9</sdkver>
      <maxsdkver>25</maxsdkver>
    </package>
  </application>
</fdroid>
"""


class TestHelpers:
    """Tests for post-parse field helpers."""

    def test_split_comma(self):
        """Test comma lists drop empty items."""
        assert split_comma("a,b,,c") == ["a", "b", "c"]
        assert split_comma("") == []
        assert split_comma(None) == []

    def test_normalize_hex_lowercases(self):
        """Test hex values are validated and lower-cased."""
        assert normalize_hex("ABcd") == "abcd"
        assert normalize_hex("") == ""

    def test_normalize_hex_rejects_invalid(self):
        """Test invalid hex is a malformed document."""
        with pytest.raises(FormatError) as exc:
            normalize_hex("xyz", "hash")
        assert exc.value.kind == FormatErrorKind.MALFORMED_DOCUMENT

    def test_to_int_accepts_numeric_strings(self):
        """Test numeric strings and ints are accepted."""
        assert to_int("21") == 21
        assert to_int(21) == 21
        assert to_int(None) == 0
        assert to_int("") == 0

    def test_to_int_rejects_garbage(self):
        """Test non-numeric values are rejected."""
        with pytest.raises(FormatError):
            to_int("twenty", "minSdkVersion")
        with pytest.raises(FormatError):
            to_int(True, "minSdkVersion")


class TestParseJsonIndex:
    """Tests for JSON v1 index parsing."""

    def test_repo_meta(self, sample_container):
        """Test repository metadata is decoded."""
        index = parse_index(sample_container)
        assert index.repo_meta.name == "Foo"
        assert index.repo_meta.timestamp_ms == 1528184950000
        assert index.repo_meta.version == 19
        assert index.repo_meta.max_age == 14

    def test_apps_sorted_by_package_name(self, sample_container):
        """Test apps come out in package order."""
        index = parse_index(sample_container)
        assert [a.package_name for a in index.apps] == ["foo.bar", "localized.app"]

    def test_app_fields(self, sample_container):
        """Test app fields, entity decoding and suggested version code."""
        app = parse_index(sample_container).apps[0]
        assert app.name == "Foo & bar"
        assert app.categories == ["Cat1", "Cat2"]
        assert app.added_ms == 1443734950000
        assert app.license == "GPL-3.0"
        assert app.website == "https://foo.example"
        assert app.suggested_version_name == "1.0"
        assert app.suggested_version_code == 1

    def test_localized_fallback_prefers_en(self, sample_container):
        """Test empty fields fall back to 'en' before 'en-US' and are trimmed."""
        app = parse_index(sample_container).apps[1]
        assert app.name == "English name"
        assert app.summary == "summary in english"

    def test_localized_fallback_en_us(self):
        """Test 'en-US' is used when 'en' is absent."""
        doc = {"apps": [{"packageName": "a", "localized": {"en-US": {"summary": "US"}}}], "packages": {}}
        index = parse_index(build_container({"index-v1.json": doc}))
        assert index.apps[0].summary == "US"

    def test_variants_sorted_and_stamped(self, sample_container):
        """Test variants are newest-first and carry owner and origin."""
        app = parse_index(sample_container).apps[0]
        assert [v.version_code for v in app.variants] == [2, 1]
        for v in app.variants:
            assert v.owner_package_name == "foo.bar"
            assert v.origin_repo_url == "https://foo.example/repo"

    def test_variant_fields(self, sample_container):
        """Test variant fields are decoded with post-parse helpers."""
        index = parse_index(sample_container)
        v1 = index.variants_by_package["foo.bar"][1]
        assert v1.version_code == 1
        assert v1.min_sdk == 14
        assert v1.size_bytes == 1024
        assert v1.hash == "1e4c77d8c9fa03b3a9c42360dc55468f378bbacadeaf694daea304fe1a2750f4"
        assert v1.hash_type == "sha256"
        assert v1.sig == "c0f3a6d46025bf41613c5e81781e517a"
        assert v1.permissions == ["android.permission.INTERNET"]
        assert v1.url == "https://foo.example/repo/foo.bar_1.apk"

        v2 = index.variants_by_package["foo.bar"][0]
        assert v2.max_sdk == 30
        assert v2.abi_list == ["arm64-v8a"]

    def test_repo_url_override(self, sample_container):
        """Test the configured repo URL is stamped instead of the declared one."""
        index = parse_index(sample_container, repo_url="https://mirror.example/repo/")
        assert index.apps[0].variants[0].origin_repo_url == "https://mirror.example/repo"

    def test_equal_version_codes_keep_document_order(self):
        """Test the variant sort is stable within a single document."""
        doc = {
            "apps": [{"packageName": "p", "suggestedVersionCode": "5"}],
            "packages": {"p": [
                {"versionCode": 4, "versionName": "a"},
                {"versionCode": 5, "versionName": "first"},
                {"versionCode": 5, "versionName": "second"},
            ]},
        }
        app = parse_index(build_container({"index-v1.json": doc})).apps[0]
        assert [v.version_name for v in app.variants] == ["first", "second", "a"]

    def test_duplicate_app_keeps_first_record(self):
        """Test a package listed twice yields one app without doubled variants."""
        doc = {
            "apps": [
                {"packageName": "p", "name": "First"},
                {"packageName": "p", "name": "Second"},
            ],
            "packages": {"p": [{"versionCode": 2}, {"versionCode": 1}]},
        }
        index = parse_index(build_container({"index-v1.json": doc}))
        assert [a.name for a in index.apps] == ["First"]
        assert [v.version_code for v in index.apps[0].variants] == [2, 1]

    def test_app_without_packages(self):
        """Test an app with no declared packages has no variants."""
        doc = {"apps": [{"packageName": "lonely"}], "packages": {}}
        assert parse_index(build_container({"index-v1.json": doc})).apps[0].variants == []

    def test_accepts_path_and_file(self, sample_container, tmp_path):
        """Test containers can be given as a path or a binary file."""
        path = tmp_path / "repo.jar"
        path.write_bytes(sample_container)
        assert len(parse_index(path).apps) == 2
        assert len(parse_index(io.BytesIO(sample_container)).apps) == 2

    def test_container_not_mutated(self, sample_container):
        """Test parsing twice yields equal results."""
        before = bytes(sample_container)
        first = parse_index(sample_container)
        second = parse_index(sample_container)
        assert sample_container == before
        assert first == second


class TestParseXmlIndex:
    """Tests for legacy XML index parsing."""

    def test_legacy_index(self):
        """Test the legacy format decodes into the same shape."""
        index = parse_index(build_container({"index.xml": LEGACY_XML}))

        assert index.repo_meta.name == "Legacy"
        assert index.repo_meta.address == "https://legacy.example/repo"
        assert index.repo_meta.timestamp_ms == 1528184950000

        app = index.apps[0]
        assert app.package_name == "org.legacy.app"
        assert app.name == "Legacy & Co"
        assert app.summary == "Old app"
        assert app.description == "<p>Hello</p>"
        assert app.categories == ["Games", "Science & Education"]
        assert app.suggested_version_code == 11
        assert [v.version_code for v in app.variants] == [11, 10]

        old = app.variants[1]
        assert old.abi_list == ["armeabi", "x86"]
        assert old.hash == "aabb"
        assert old.hash_type == "sha256"
        assert old.permissions == ["INTERNET", "CAMERA"]
        assert app.variants[0].max_sdk == 25

    def test_json_preferred_over_xml(self, sample_index):
        """Test the JSON entry wins when both are present."""
        container = build_container({"index.xml": LEGACY_XML, "index-v1.json": sample_index})
        assert parse_index(container).repo_meta.name == "Foo"


class TestParseErrors:
    """Tests for parser failure modes."""

    def test_no_index_entry(self):
        """Test a container without an index entry."""
        with pytest.raises(FormatError) as exc:
            parse_index(build_container({"something-else.txt": "hi"}))
        assert exc.value.kind == FormatErrorKind.NO_INDEX_ENTRY

    def test_not_a_zip(self):
        """Test non-zip bytes are malformed."""
        with pytest.raises(FormatError) as exc:
            parse_index(b"definitely not a zip")
        assert exc.value.kind == FormatErrorKind.MALFORMED_DOCUMENT

    def test_invalid_json(self):
        """Test an undecodable JSON entry is malformed."""
        with pytest.raises(FormatError) as exc:
            parse_index(build_container({"index-v1.json": "{not json"}))
        assert exc.value.kind == FormatErrorKind.MALFORMED_DOCUMENT

    def test_wrong_types(self):
        """Test structurally wrong documents are malformed."""
        doc = {"apps": [{"packageName": "p"}], "packages": {"p": [{"versionCode": "abc"}]}}
        with pytest.raises(FormatError) as exc:
            parse_index(build_container({"index-v1.json": json.dumps(doc)}))
        assert exc.value.kind == FormatErrorKind.MALFORMED_DOCUMENT

    def test_missing_package_name(self):
        """Test an app without packageName is malformed."""
        doc = {"apps": [{"name": "nameless"}], "packages": {}}
        with pytest.raises(FormatError) as exc:
            parse_index(build_container({"index-v1.json": doc}))
        assert exc.value.kind == FormatErrorKind.MALFORMED_DOCUMENT

    def test_invalid_xml(self):
        """Test a broken legacy document is malformed."""
        with pytest.raises(FormatError) as exc:
            parse_index(build_container({"index.xml": "<fdroid><application>"}))
        assert exc.value.kind == FormatErrorKind.MALFORMED_DOCUMENT
