import pytest

from geo import GeolocationError, StaticGeolocationProvider, distance_between, is_valid_coordinate


def test_static_provider_returns_position():
    provider = StaticGeolocationProvider((-17.8292, 31.0522))

    assert provider.get_current_position() == (-17.8292, 31.0522)


def test_static_provider_without_position_raises():
    with pytest.raises(GeolocationError):
        StaticGeolocationProvider().get_current_position()

    with pytest.raises(GeolocationError):
        StaticGeolocationProvider((95.0, 31.0)).get_current_position()


def test_distance_between_unknown_side_is_none():
    assert distance_between(None, (-17.8, 31.0)) is None
    assert distance_between((-17.8, 31.0), None) is None
    assert not is_valid_coordinate((0.0, 200.0))
