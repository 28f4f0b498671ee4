import pytest
from scalecodec.base import RuntimeConfigurationObject, ScaleBytes
from scalecodec.type_registry import load_type_registry_preset

from polymesh_tx.utils.hash import blake2_256, storage_key, twox128
from polymesh_tx.utils.scale import Era


@pytest.fixture(scope="module")
def core_types():
    config = RuntimeConfigurationObject()
    config.update_type_registry(load_type_registry_preset("core"))
    return config


def _scale_era(config, era):
    return bytes(config.create_scale_object("Era").encode(era.to_scale()).data)


def test_mortal_era_example(core_types):
    era = Era.mortal(64, 100)
    assert (era.period, era.phase) == (64, 36)
    assert era.to_scale() == (64, 36)
    assert _scale_era(core_types, era) == bytes([0x45, 0x02])
    assert era.birth(100) == 100
    assert era.death(100) == 164


def test_era_period_is_clamped_to_power_of_two(core_types):
    assert Era.mortal(50, 1000).period == 64
    assert Era.mortal(2, 5).period == 4
    big = Era.mortal(100_000, 1_000_005)
    assert big.period == 65536
    # 1_000_005 % 65536 == 16965, quantized down to a multiple of 16
    assert big.phase == 16960
    encoded = _scale_era(core_types, big)
    decoded = core_types.create_scale_object("Era", data=ScaleBytes(bytearray(encoded)))
    assert Era.from_scale(decoded.decode()) == big


def test_immortal_era(core_types):
    era = Era()
    assert era.is_immortal
    assert era.to_scale() == "00"
    assert _scale_era(core_types, era) == b"\x00"
    assert Era.from_scale("00") == era
    assert era.death(10) is None


def test_era_from_scale_rejects_garbage():
    with pytest.raises(ValueError):
        Era.from_scale("0x4502")


def test_system_events_storage_key():
    assert storage_key("System", "Events") == (
        "0x26aa394eea5630e07c48ae0c9558cef780d41e5e16056765bc8461851072c9d7"
    )
    assert twox128(b"System").hex() == "26aa394eea5630e07c48ae0c9558cef7"


def test_blake2_256_of_empty_input():
    assert blake2_256(b"").hex() == (
        "0e5751c026e543b2e8ab2eb06099daa1d1e5df47778f7787faab45cdf12fe3a8"
    )
