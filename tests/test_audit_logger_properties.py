"""
Property-based tests for Audit Logger module.

Covers dual-format output, level filtering, masking of secrets and
HMAC signing of entries in audit mode.
"""

import json
from io import StringIO

from hypothesis import given, settings, assume
from hypothesis import strategies as st

from ip_monitor.audit_logger import AuditLogger
from ip_monitor.config import LoggingConfig
from ip_monitor.enums import LogLevel
from ip_monitor.exceptions import NetworkUnavailableError


# Strategies for generating valid test data

component_names = st.text(
    alphabet="abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_-",
    min_size=1,
    max_size=30,
)

messages = st.text(
    alphabet=st.characters(
        whitelist_categories=("L", "N", "P", "S", "Zs"),
        blacklist_characters="\x00\n\r",
    ),
    min_size=1,
    max_size=100,
)

simple_values = st.one_of(
    st.text(max_size=30),
    st.integers(min_value=-1000, max_value=1000),
    st.booleans(),
    st.none(),
)


@st.composite
def plain_data(draw) -> dict:
    """Data dictionaries without sensitive keys."""
    keys = draw(st.lists(
        st.text(alphabet="abcdefghijklmnopqrstuvwxyz_", min_size=1, max_size=12),
        max_size=5,
    ))
    data = {}
    for key in keys:
        assume(not any(s in key for s in AuditLogger.SENSITIVE_KEYS))
        data[key] = draw(simple_values)
    return data


class TestDualFormatProperty:
    """Property 15: 'both' writes a JSON line followed by a text line."""

    @given(
        level=st.sampled_from(list(LogLevel)),
        component=component_names,
        message=messages,
        data=plain_data(),
    )
    @settings(max_examples=100)
    def test_dual_format_produces_both_outputs(
        self, level: LogLevel, component: str, message: str, data: dict
    ) -> None:
        output = StringIO()
        logger = AuditLogger(output_format="both", output_stream=output, level=LogLevel.DEBUG)

        logger.log(level, component, message, data)

        lines = output.getvalue().strip().split("\n")
        assert len(lines) == 2

        parsed = json.loads(lines[0])
        assert parsed["level"] == level.value
        assert parsed["component"] == component
        assert parsed["message"] == message
        assert parsed["data"] == data

        assert level.value.upper() in lines[1]
        assert f"[{component}]" in lines[1]

    def test_invalid_format_rejected(self) -> None:
        try:
            AuditLogger(output_format="xml")
        except ValueError:
            return
        raise AssertionError("invalid format accepted")


class TestLevelFilterProperty:
    """Property 16: entries below the configured level are dropped."""

    @given(
        threshold=st.sampled_from(list(LogLevel)),
        level=st.sampled_from(list(LogLevel)),
    )
    @settings(max_examples=50)
    def test_filtered_entries_are_not_written(self, threshold: LogLevel, level: LogLevel) -> None:
        output = StringIO()
        logger = AuditLogger(output_format="text", output_stream=output, level=threshold)

        entry = logger.log(level, "Test", "message")

        if level.severity >= threshold.severity:
            assert entry is not None
            assert output.getvalue()
        else:
            assert entry is None
            assert output.getvalue() == ""
            assert logger.entries == []

    def test_from_config_honours_level(self) -> None:
        output = StringIO()
        logger = AuditLogger.from_config(LoggingConfig(level="warn"), output_stream=output)

        logger.info("Test", "dropped")
        logger.warn("Test", "kept")

        assert logger.level is LogLevel.WARN
        assert "kept" in output.getvalue()
        assert "dropped" not in output.getvalue()

    def test_from_config_unknown_level_defaults_to_info(self) -> None:
        logger = AuditLogger.from_config(LoggingConfig(level="chatty"), output_stream=StringIO())
        assert logger.level is LogLevel.INFO


class TestMaskingProperty:
    """Property 17: secrets never reach the output."""

    @given(
        key=st.sampled_from(sorted(AuditLogger.SENSITIVE_KEYS)),
        prefix=st.sampled_from(["", "my_", "app_"]),
        value=st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789", min_size=8, max_size=30),
    )
    @settings(max_examples=100)
    def test_sensitive_values_masked(self, key: str, prefix: str, value: str) -> None:
        assume(value not in f"{prefix}{key} nested config loaded")
        output = StringIO()
        logger = AuditLogger(output_format="json", output_stream=output)

        logger.info("Test", "config loaded", {f"{prefix}{key}": value, "nested": {key: value}})

        written = output.getvalue()
        assert value not in written
        assert AuditLogger.MASK_VALUE in written

    def test_plain_values_untouched(self) -> None:
        logger = AuditLogger(output_format="json", output_stream=StringIO())
        data = {"domain": "example.com", "ipv4": 2}
        assert logger.mask_sensitive_data(data) == data


class TestAuditSigningProperty:
    """Property 18: audit mode signs every entry verifiably."""

    @given(
        key=st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789", min_size=16, max_size=40),
        message=messages,
        data=plain_data(),
    )
    @settings(max_examples=50)
    def test_signatures_verify(self, key: str, message: str, data: dict) -> None:
        logger = AuditLogger(output_format="json", output_stream=StringIO())
        logger.enable_audit_mode(key)

        entry = logger.info("Test", message, data)

        assert entry.signature
        assert logger.verify_signature(entry)

        entry.message = entry.message + "!"
        assert not logger.verify_signature(entry)

    def test_empty_signing_key_rejected(self) -> None:
        logger = AuditLogger()
        try:
            logger.enable_audit_mode("")
        except ValueError:
            return
        raise AssertionError("empty key accepted")


class TestErrorLogging:

    def test_error_context_includes_code(self) -> None:
        logger = AuditLogger(output_format="json", output_stream=StringIO())
        error = NetworkUnavailableError(code="timeout", message="DoH A query timed out")

        entry = logger.log_error("DoHClient", "Query failed", error, {"domain": "example.com"})

        assert entry.level is LogLevel.ERROR
        assert entry.data["error_code"] == "timeout"
        assert entry.data["error_type"] == "NetworkUnavailableError"
        assert entry.data["domain"] == "example.com"

    def test_plain_exception_has_no_code(self) -> None:
        logger = AuditLogger(output_format="json", output_stream=StringIO())
        entry = logger.log_error("Test", "boom", RuntimeError("bad"))
        assert "error_code" not in entry.data
        assert entry.data["error_message"] == "bad"
