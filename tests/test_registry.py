import pytest

from polymesh_tx import registry as registry_mod
from polymesh_tx.chain_types import spec_types
from polymesh_tx.errors import RegistryBuildError
from polymesh_tx.registry import RegistryCache, build_registry


def test_spec_types_applies_matching_versions():
    old = spec_types("polymesh", 2000)
    new = spec_types("polymesh_testnet", 5004000)
    assert old["LookupSource"] == "IndicesLookupSource"
    assert old["Permissions"] == "Vec<Permission>"
    assert new["LookupSource"] == "MultiAddress"
    assert new["Permissions"]["type"] == "struct"
    assert "PalletPermissions" in new


def test_spec_types_extra_overrides_and_unknown_chain():
    extra = {"types": {"Ticker": "[u8; 16]"}, "versioning": [{"runtime_range": [10, None], "types": {"Foo": "u8"}}]}
    merged = spec_types("polymesh", 3000, extra)
    assert merged["Ticker"] == "[u8; 16]"
    assert merged["Foo"] == "u8"
    assert spec_types("kusama", 9000) == {}
    assert spec_types("kusama", 5, extra) == {"Ticker": "[u8; 16]"}


def test_build_registry_rejects_garbage_metadata():
    with pytest.raises(RegistryBuildError):
        build_registry({"ss58Format": 42}, "0x00010203", "polymesh_testnet", 5004000)


def test_registry_cache_builds_once(monkeypatch):
    built = []

    class _Reg:
        def __init__(self, spec_name, spec_version):
            self.spec_name, self.spec_version = spec_name, spec_version

    def fake_build(props, metadata, spec_name, spec_version, **kwargs):
        built.append((metadata, spec_name, spec_version, kwargs["chain_name"]))
        return _Reg(spec_name, spec_version)

    monkeypatch.setattr(registry_mod, "build_registry", fake_build)
    cache = RegistryCache({"ss58Format": 42}, chain_name="Polymesh Testnet")
    first = cache.get_or_build("0xaa", "polymesh_testnet", 1)
    assert cache.get_or_build("0xbb", "polymesh_testnet", 1) is first
    assert cache.get_or_build("0xcc", "polymesh_testnet", 2) is not first
    assert built == [
        ("0xaa", "polymesh_testnet", 1, "Polymesh Testnet"),
        ("0xcc", "polymesh_testnet", 2, "Polymesh Testnet"),
    ]
    assert cache.get("polymesh_testnet", 2).spec_version == 2
