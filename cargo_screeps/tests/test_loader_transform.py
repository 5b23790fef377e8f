"""
test_loader_transform — scaffold stripping and Screeps loader assembly.

Tests verify:
  - The bootstrap body is exactly the text between prefix and suffix.
  - Whitespace drift inside the scaffold is tolerated; structural drift
    is a LoaderShapeMismatch naming the drifted anchor.
  - Every console.error is rewritten.
  - The module fetch references the output wasm stem.
  - Output is deterministic.
"""
import re
from pathlib import Path

import pytest

from cargo_screeps.core.config_loader import BuildConfiguration
from cargo_screeps.core.loader_transform import (
    DEFAULT_HEADER_PATH,
    derive_module_name,
    extract_bootstrap,
    load_initialization_header,
    template_to_pattern,
    transform_loader,
    validate_header,
)
from cargo_screeps.errors import (
    ISSUES_URL,
    InitializationHeaderError,
    InvalidModuleName,
    LoaderShapeMismatch,
    SourceDecodeError,
)
from cargo_screeps.policy.profile import PipelineProfile
from cargo_screeps.policy.scaffold import CARGO_WEB_0_6, ScaffoldTemplate


MINIMAL_HEADER = (
    "function console_error(msg) { console.log(msg); }\n"
    "module.exports.loop = function () {\n"
    "    var vars = wasm_create_stdweb_vars();\n"
    "    vars.initialize(new WebAssembly.Instance(\n"
    "        new WebAssembly.Module(wasm_fetch_module_bytes()), vars.imports));\n"
    "};"
)


def _reflow(text: str) -> str:
    """Change every whitespace run, keeping tokens intact."""
    return re.sub(r"\s+", lambda m: "\n\t  " if "\n" in m.group(0) else "  ", text)


class TestTemplatePattern:

    def test_whitespace_is_flexible(self):
        pattern = re.compile(template_to_pattern("var  x =\n  1;"))

        assert pattern.fullmatch("var x = 1;")
        assert pattern.fullmatch("var\tx\n=\n1;")
        assert pattern.fullmatch("varx=1;")
        assert not pattern.fullmatch("var y = 1;")

    def test_literal_characters_escaped(self):
        pattern = re.compile(template_to_pattern('fetch( "XXX.wasm", {a: 1} );'))

        assert pattern.fullmatch('fetch( "my_crate.wasm", {a: 1} );')
        assert not pattern.fullmatch('fetch( "my_crate.wasm", {a: 12} );')
        assert not pattern.fullmatch('fetchX "my_crate.wasm", {a: 1} );')

    def test_placeholder_matches_identifier_safe_names(self):
        pattern = re.compile(template_to_pattern("Rust.XXX = factory();"))

        assert pattern.fullmatch("Rust.my-crate_2 = factory();")
        assert not pattern.fullmatch("Rust.my.crate = factory();")
        assert not pattern.fullmatch('Rust.a"b = factory();')


class TestExtractBootstrap:

    def test_body_between_anchors(self, generated_js, bootstrap_body):
        body, template = extract_bootstrap(generated_js)

        assert body == bootstrap_body
        assert template is CARGO_WEB_0_6

    def test_any_crate_name(self, loader_factory, bootstrap_body):
        body, _ = extract_bootstrap(loader_factory(crate="other-crate_9"))

        assert body == bootstrap_body

    def test_reformatted_scaffold_still_matches(self, crate_name, bootstrap_body):
        prefix = CARGO_WEB_0_6.prefix.replace("XXX", crate_name)
        script = _reflow(prefix) + bootstrap_body + _reflow(CARGO_WEB_0_6.suffix)

        body, _ = extract_bootstrap(script)

        assert body == bootstrap_body

    def test_trailing_newlines_tolerated(self, generated_js, bootstrap_body):
        body, _ = extract_bootstrap(generated_js + "\n\n")

        assert body == bootstrap_body

    def test_changed_prefix(self, generated_js):
        script = generated_js.replace("define.amd", "define.umd", 1)

        with pytest.raises(LoaderShapeMismatch) as exc_info:
            extract_bootstrap(script, "target/bot.js")

        err = exc_info.value
        assert err.anchor == "prefix"
        assert ISSUES_URL in str(err)
        assert "first ~30 lines of target/bot.js" in str(err)
        assert CARGO_WEB_0_6.name in str(err)

    def test_leading_text_breaks_prefix_anchor(self, generated_js):
        with pytest.raises(LoaderShapeMismatch) as exc_info:
            extract_bootstrap("// banner\n" + generated_js)

        assert exc_info.value.anchor == "prefix"

    def test_changed_suffix(self, generated_js):
        script = generated_js.rstrip() + "\nwindow.loaded = true;\n"

        with pytest.raises(LoaderShapeMismatch) as exc_info:
            extract_bootstrap(script, "target/bot.js")

        assert exc_info.value.anchor == "suffix"
        assert "last ~30 lines" in str(exc_info.value)

    def test_unrelated_script(self):
        with pytest.raises(LoaderShapeMismatch):
            extract_bootstrap("console.log('hello');\n")

    def test_additional_template_without_algorithm_change(self):
        custom = ScaffoldTemplate(
            name="toy-1",
            generator="toy",
            prefix="(function XXX() {",
            suffix="\n})();\n",
        )
        script = "(function  bot()  {\n  return 42;\n})();\n"

        body, template = extract_bootstrap(script, templates=(CARGO_WEB_0_6, custom))

        assert template is custom
        assert body == "\n  return 42;"


class TestModuleName:

    @pytest.mark.parametrize(
        "filename, expected",
        [
            ("compiled.wasm", "compiled"),
            ("main_loop-v2.wasm", "main_loop-v2"),
            ("nested/dir/bot.wasm", "bot"),
            ("noext", "noext"),
        ],
    )
    def test_stem(self, filename, expected):
        assert derive_module_name(Path(filename), PipelineProfile.v1()) == expected

    def test_no_filename(self):
        with pytest.raises(InvalidModuleName, match="ending in a filename"):
            derive_module_name(Path(""), PipelineProfile.v1())

    def test_not_encodable(self):
        with pytest.raises(InvalidModuleName, match="UTF8"):
            derive_module_name(Path("bad\udcff.wasm"), PipelineProfile.v1())

    @pytest.mark.parametrize("filename", ["my bot.wasm", "it's.wasm", "a.b.wasm"])
    def test_not_identifier_safe(self, filename):
        with pytest.raises(InvalidModuleName):
            derive_module_name(Path(filename), PipelineProfile.v1())


class TestHeader:

    def test_default_header(self, tmp_path):
        text, source = load_initialization_header(tmp_path, BuildConfiguration())

        assert text == DEFAULT_HEADER_PATH.read_text(encoding="utf-8")
        assert source == "<default header>"

    def test_custom_header_relative_to_root(self, tmp_path):
        (tmp_path / "js").mkdir()
        (tmp_path / "js" / "header.js").write_text(MINIMAL_HEADER)
        config = BuildConfiguration(initialization_header_file=Path("js/header.js"))

        text, source = load_initialization_header(tmp_path, config)

        assert text == MINIMAL_HEADER
        assert source.endswith("header.js")

    def test_custom_header_missing_file(self, tmp_path):
        config = BuildConfiguration(initialization_header_file=Path("missing.js"))

        with pytest.raises(FileNotFoundError):
            load_initialization_header(tmp_path, config)

    def test_custom_header_not_utf8(self, tmp_path):
        (tmp_path / "header.js").write_bytes(b"\xff\xfe function console_error() {}")
        config = BuildConfiguration(initialization_header_file=Path("header.js"))

        with pytest.raises(SourceDecodeError, match="header.js"):
            load_initialization_header(tmp_path, config)

    def test_default_header_provides_hooks(self):
        header = DEFAULT_HEADER_PATH.read_text(encoding="utf-8")

        validate_header(header, "console_error('x');", "<default header>", PipelineProfile.v1())

    def test_missing_console_error_definition(self):
        header = "wasm_fetch_module_bytes(); wasm_create_stdweb_vars();"

        with pytest.raises(InitializationHeaderError) as exc_info:
            validate_header(header, "console_error('x');", "h.js", PipelineProfile.v1())

        assert exc_info.value.missing == ["definition of console_error"]

    def test_console_error_only_required_when_used(self):
        header = "wasm_fetch_module_bytes(); wasm_create_stdweb_vars();"

        validate_header(header, "return {};", "h.js", PipelineProfile.v1())

    def test_missing_hooks_listed(self):
        with pytest.raises(InitializationHeaderError) as exc_info:
            validate_header("// nothing", "return {};", "h.js", PipelineProfile.v1())

        assert exc_info.value.missing == [
            "wasm_fetch_module_bytes",
            "wasm_create_stdweb_vars",
        ]
        assert "h.js" in str(exc_info.value)


class TestTransformLoader:

    def test_assembled_output(self, generated_js):
        result = transform_loader(generated_js, BuildConfiguration(), MINIMAL_HEADER)

        assert result.module_name == "compiled"
        assert result.template == CARGO_WEB_0_6.name
        assert result.text.startswith(MINIMAL_HEADER + "\n\nfunction wasm_fetch_module_bytes() {")
        assert "    return require('compiled');\n" in result.text
        assert "function wasm_create_stdweb_vars() {\n    \"use strict\";\n" in result.text
        assert result.text.endswith("\n}\n")

    def test_scaffold_removed(self, generated_js):
        text = transform_loader(generated_js, BuildConfiguration(), MINIMAL_HEADER).text

        assert "instantiateStreaming" not in text
        assert "define.amd" not in text
        assert "Module.STDWEB_PRIVATE.to_js_string" in text

    def test_console_error_rewritten_everywhere(self, generated_js, bootstrap_body):
        assert bootstrap_body.count("console.error") == 2

        text = transform_loader(generated_js, BuildConfiguration(), MINIMAL_HEADER).text

        assert "console.error" not in text
        body_part = text.split("function wasm_create_stdweb_vars()", 1)[1]
        assert body_part.count("console_error(") == 2

    def test_module_name_from_config(self, generated_js):
        config = BuildConfiguration(output_wasm_file=Path("my_bot.wasm"))

        text = transform_loader(generated_js, config, MINIMAL_HEADER).text

        assert "require('my_bot')" in text
        assert "require('compiled')" not in text

    def test_default_header_scenario(self, loader_factory, bootstrap_body):
        script = loader_factory(crate="main")
        config = BuildConfiguration(output_wasm_file=Path("main.wasm"))
        header = DEFAULT_HEADER_PATH.read_text(encoding="utf-8")

        text = transform_loader(script, config, header).text

        assert text.startswith(header)
        assert "require('main')" in text
        assert bootstrap_body.replace("console.error", "console_error") in text

    def test_deterministic(self, generated_js):
        config = BuildConfiguration()

        first = transform_loader(generated_js, config, MINIMAL_HEADER)
        second = transform_loader(generated_js, config, MINIMAL_HEADER)

        assert first == second
        assert first.text.encode("utf-8") == second.text.encode("utf-8")

    def test_shape_mismatch_propagates(self):
        with pytest.raises(LoaderShapeMismatch):
            transform_loader("var x;", BuildConfiguration(), MINIMAL_HEADER)

    def test_invalid_module_name_propagates(self, generated_js):
        config = BuildConfiguration(output_wasm_file=Path("bad name.wasm"))

        with pytest.raises(InvalidModuleName):
            transform_loader(generated_js, config, MINIMAL_HEADER)

    def test_header_validated(self, generated_js):
        with pytest.raises(InitializationHeaderError):
            transform_loader(generated_js, BuildConfiguration(), "// empty header")
