"""Pytest configuration and shared fixtures."""

import io
import json
import zipfile

import pytest


def build_container(entries: dict) -> bytes:
    """Zip ``{name: str|bytes|dict}`` entries into container bytes."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, content in entries.items():
            if isinstance(content, dict):
                content = json.dumps(content)
            if isinstance(content, str):
                content = content.encode("utf-8")
            zf.writestr(name, content)
    return buf.getvalue()


def json_index(repo_address: str, apps: list, packages: dict, name: str = "Repo") -> dict:
    return {
        "repo": {"name": name, "address": repo_address, "timestamp": 1528184950000, "version": 19},
        "apps": apps,
        "packages": packages,
    }


@pytest.fixture
def sample_index() -> dict:
    """A JSON v1 index with one full app and one localized-only app."""
    return {
        "repo": {
            "name": "Foo",
            "version": 19,
            "timestamp": 1528184950000,
            "address": "https://foo.example/repo",
            "maxage": 14,
        },
        "requests": {"install": [], "uninstall": []},
        "apps": [
            {
                "packageName": "localized.app",
                "localized": {
                    "en-US": {"name": "US name"},
                    "en": {"summary": "summary in english\n", "name": "English name"},
                },
            },
            {
                "packageName": "foo.bar",
                "name": "Foo &amp; bar",
                "categories": ["Cat1", "Cat2"],
                "added": 1443734950000,
                "lastUpdated": 1443734950000,
                "license": "GPL-3.0",
                "webSite": "https://foo.example",
                "suggestedVersionName": "1.0",
                "suggestedVersionCode": "1",
            },
        ],
        "packages": {
            "foo.bar": [
                {
                    "versionName": "1.0",
                    "versionCode": 1,
                    "size": 1024,
                    "minSdkVersion": "14",
                    "apkName": "foo.bar_1.apk",
                    "hash": "1E4C77D8C9FA03B3A9C42360DC55468F378BBACADEAF694DAEA304FE1A2750F4",
                    "hashType": "sha256",
                    "sig": "c0f3a6d46025bf41613c5e81781e517a",
                    "signer": "573c2762a2ff87c4c1ef104b35147c8c316676e5d072ec636fc718f35df6cf22",
                    "uses-permission": [["android.permission.INTERNET", None]],
                },
                {
                    "versionName": "2.0",
                    "versionCode": 2,
                    "minSdkVersion": 21,
                    "maxSdkVersion": 30,
                    "nativecode": ["arm64-v8a"],
                    "apkName": "foo.bar_2.apk",
                },
            ]
        },
    }


@pytest.fixture
def sample_container(sample_index) -> bytes:
    return build_container({"index-v1.json": sample_index, "META-INF/INDEX.RSA": b"sig"})
