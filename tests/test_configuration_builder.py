"""Tests for ConfigurationBuilder precedence and bulk import"""

import ssl

import pytest

from restboot import constants
from restboot.configuration.builder import ConfigurationBuilder, builder
from restboot.configuration.store import ClientAuthMode
from restboot.errors import InvalidConfigurationError


def test_explicit_values_are_built():
    config = ConfigurationBuilder().port(8443).protocol("HTTPS").build()

    assert config.port() == 8443
    assert config.protocol() == "HTTPS"
    assert config.host() == "localhost"
    assert config.root_path() == "/"


def test_builder_function_uses_runtime_delegate():
    config = builder().host("127.0.0.1").build()

    assert config.host() == "127.0.0.1"


def test_explicit_value_wins_over_later_import():
    config = (
        ConfigurationBuilder()
        .port(8080)
        .import_from({constants.PORT: 9090, constants.HOST: "example.org"})
        .build()
    )

    assert config.port() == 8080
    assert config.host() == "example.org"


def test_explicit_value_wins_over_earlier_import():
    config = (
        ConfigurationBuilder()
        .import_from({constants.PORT: 9090})
        .port(8080)
        .build()
    )

    assert config.port() == 8080


def test_set_after_provider_import_wins():
    def provider(name, expected):
        return 8888 if name == constants.PORT else None

    config = ConfigurationBuilder().import_from(provider).set(constants.PORT, 9999).build()

    assert config.port() == 9999


def test_none_reverts_to_default():
    config = ConfigurationBuilder().port(8080).port(None).build()

    assert config.port() == constants.DEFAULT_PORT


def test_none_shadows_imported_value():
    config = (
        ConfigurationBuilder()
        .import_from({constants.HOST: "example.org"})
        .host(None)
        .build()
    )

    assert config.host() == constants.DEFAULT_HOST


def test_none_for_unknown_key_removes_it():
    config = (
        ConfigurationBuilder()
        .import_from({"vendor.option": 1})
        .set("vendor.option", None)
        .build()
    )

    assert "vendor.option" not in config


def test_root_path_rejects_none():
    with pytest.raises(InvalidConfigurationError):
        ConfigurationBuilder().root_path(None)


def test_build_does_not_consume_builder():
    config_builder = ConfigurationBuilder().port(8080)
    first = config_builder.build()
    config_builder.port(9090)
    second = config_builder.build()

    assert first.port() == 8080
    assert second.port() == 9090
    assert first == ConfigurationBuilder().port(8080).build()


def test_last_import_wins():
    config = (
        ConfigurationBuilder()
        .import_from({constants.PORT: 1111})
        .import_from({constants.PORT: 2222})
        .build()
    )

    assert config.port() == 2222


def test_provider_is_asked_with_expected_types():
    requested = {}

    def provider(name, expected):
        requested[name] = expected
        return None

    ConfigurationBuilder().set("vendor.option", "x").import_from(provider)

    assert requested[constants.PORT] is int
    assert requested[constants.PROTOCOL] is str
    assert requested[constants.TLS_CONTEXT] is ssl.SSLContext
    assert requested[constants.TLS_CLIENT_AUTH_MODE] is ClientAuthMode
    assert requested["vendor.option"] is object


def test_provider_values_are_imported():
    def provider(name, expected):
        return {constants.PORT: 7070, constants.ROOT_PATH: "api"}.get(name)

    config = ConfigurationBuilder().import_from(provider).build()

    assert config.port() == 7070
    assert config.root_path() == "api"


def test_wrongly_typed_imported_value_is_discarded():
    def provider(name, expected):
        return {constants.PORT: "not-a-port", constants.HOST: True}.get(name)

    config = ConfigurationBuilder().import_from(provider).build()

    assert config.port() == constants.DEFAULT_PORT
    assert config.host() == constants.DEFAULT_HOST


def test_boolean_port_from_provider_is_discarded():
    config = ConfigurationBuilder().import_from(lambda name, expected: True).build()

    assert config.port() == constants.DEFAULT_PORT


@pytest.mark.parametrize("source", [None, 42, object(), str, "not-a-settings-file"])
def test_unsupported_source_is_ignored(source):
    config = ConfigurationBuilder().port(8080).import_from(source).build()

    assert config == ConfigurationBuilder().port(8080).build()


def test_from_configuration_copies_values():
    original = ConfigurationBuilder().port(8080).set("vendor.option", 3).build()

    copy = ConfigurationBuilder.from_configuration(original).host("example.org").build()

    assert copy.port() == 8080
    assert copy.get("vendor.option") == 3
    assert copy.host() == "example.org"
    assert original.host() == constants.DEFAULT_HOST
