import pytest

from guardalloc.config import ConfigError, UnityConfig, load_config, parse_defines


def test_commented_defines_are_ignored():
    text = (
        "#ifndef UNITY_CONFIG_H\n"
        "#define UNITY_CONFIG_H\n"
        "/* #define UNITY_INCLUDE_64 */\n"
        "/* #define UNITY_INT_WIDTH 16 */\n"
        "// #define UNITY_EXCLUDE_FLOAT\n"
        "#endif /* UNITY_CONFIG_H */\n"
    )
    assert parse_defines(text) == {"UNITY_CONFIG_H": ""}


def test_function_like_macro_keeps_body():
    defines = parse_defines("#define UNITY_OUTPUT_CHAR(a) RS232_putc(a)\n")
    assert defines == {"UNITY_OUTPUT_CHAR": "RS232_putc(a)"}


def test_undef_removes_definition():
    defines = parse_defines("#define UNITY_INCLUDE_64\n#undef UNITY_INCLUDE_64\n#define X 1\n")
    assert defines == {"X": "1"}


def test_line_continuation_is_joined():
    defines = parse_defines("#define UNITY_INT_WIDTH \\\n 16\n")
    assert defines["UNITY_INT_WIDTH"] == "16"


def test_explicit_widths_and_precision():
    cfg = load_config(
        "#define UNITY_INT_WIDTH 16\n"
        "#define UNITY_LONG_WIDTH 32\n"
        "#define UNITY_POINTER_WIDTH 16\n"
        "#define UNITY_FLOAT_PRECISION 0.001f\n"
    )
    assert (cfg.int_width, cfg.long_width, cfg.pointer_width) == (16, 32, 16)
    assert cfg.float_precision == pytest.approx(0.001)
    assert cfg.support_64() is False


def test_default_precisions_follow_documentation():
    cfg = UnityConfig()
    assert cfg.float_precision == 0.00001
    assert cfg.double_precision == 1e-12


def test_excluded_probes_fall_back_to_32_bits():
    cfg = load_config("#define UNITY_EXCLUDE_LIMITS_H\n#define UNITY_EXCLUDE_STDINT_H\n")
    assert (cfg.int_width, cfg.long_width, cfg.pointer_width) == (32, 32, 32)
    assert cfg.support_64() is False


def test_64_bit_support_from_width_or_flag():
    wide = load_config("#define UNITY_EXCLUDE_LIMITS_H\n#define UNITY_POINTER_WIDTH 64\n")
    flagged = load_config(
        "#define UNITY_EXCLUDE_LIMITS_H\n#define UNITY_EXCLUDE_STDINT_H\n#define UNITY_INCLUDE_64\n"
    )
    assert wide.support_64() is True
    assert flagged.support_64() is True


def test_float_and_double_switches():
    assert UnityConfig().float_enabled() is True
    assert UnityConfig().double_enabled() is False
    assert load_config("#define UNITY_EXCLUDE_FLOAT\n").float_enabled() is False
    assert load_config("#define UNITY_INCLUDE_DOUBLE\n").double_enabled() is True
    both = load_config("#define UNITY_INCLUDE_DOUBLE\n#define UNITY_EXCLUDE_DOUBLE\n")
    assert both.double_enabled() is False


def test_malloc_alignment_is_pointer_bytes():
    assert UnityConfig(pointer_width=64).malloc_alignment() == 8
    assert UnityConfig(pointer_width=16).malloc_alignment() == 2


def test_heap_size_and_stdlib_exclusion():
    cfg = load_config(
        "#define UNITY_EXCLUDE_STDLIB_MALLOC\n#define UNITY_INTERNAL_HEAP_SIZE_BYTES 512\n"
    )
    assert cfg.exclude_stdlib_malloc is True
    assert cfg.internal_heap_size_bytes == 512


def test_default_heap_size():
    assert UnityConfig().internal_heap_size_bytes == 256


def test_raw_defines_are_kept():
    cfg = load_config("#define UNITY_FLOAT_TYPE float16_t\n")
    assert cfg.defines == {"UNITY_FLOAT_TYPE": "float16_t"}
    assert cfg.float_type == "float16_t"


def test_invalid_width_rejected():
    with pytest.raises(ConfigError):
        load_config("#define UNITY_INT_WIDTH 12\n")


def test_malformed_integer_rejected():
    with pytest.raises(ConfigError):
        load_config("#define UNITY_POINTER_WIDTH wide\n")


def test_malformed_precision_rejected():
    with pytest.raises(ConfigError):
        load_config("#define UNITY_DOUBLE_PRECISION tiny\n")


def test_nonpositive_heap_rejected():
    with pytest.raises(ConfigError):
        UnityConfig(internal_heap_size_bytes=0)


def test_emit_routes_each_character_to_hook():
    sent = []
    cfg = UnityConfig(output_char=sent.append)
    cfg.emit("TEST - PASS")
    assert sent == list("TEST - PASS")


def test_emit_defaults_to_stdout(capsys):
    UnityConfig().emit("Expected 4.0 Was 4.25")
    assert capsys.readouterr().out == "Expected 4.0 Was 4.25"


def test_flush_start_complete_hooks():
    calls = []
    cfg = UnityConfig(
        output_flush=lambda: calls.append("flush"),
        output_start=lambda: calls.append("start"),
        output_complete=lambda: calls.append("complete"),
    )
    cfg.start()
    cfg.flush()
    cfg.complete()
    assert calls == ["start", "flush", "complete"]