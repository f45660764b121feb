"""Tests for the default opaque transforms."""

import pytest

from fabrica.assets.stages import Artifact
from fabrica.assets.transforms import (
    compact_css, compact_js, lint_scripts, lint_styles, substitute_variables,
)


class TestSubstituteVariables:
    """Tests for substitute_variables."""

    def test_declaration_and_reference(self):
        text = "$brand: #c00;\na { color: $brand; }\n"
        assert substitute_variables(text) == "a { color: #c00; }\n"

    def test_predefined_variables(self):
        assert substitute_variables("a { width: $w; }", {'w': '10px'}) == "a { width: 10px; }"

    def test_declaration_overrides_predefined(self):
        text = "$w: 20px;\na { width: $w; }"
        assert substitute_variables(text, {'w': '10px'}) == "a { width: 20px; }"

    def test_undefined_variable(self):
        with pytest.raises(ValueError, match=r"\$missing"):
            substitute_variables("a { color: $missing; }")


class TestCompact:
    """Tests for compact_css and compact_js."""

    def test_compact_css(self):
        text = "/* header */\nbody {\n  margin: 0;\n  color: red;\n}\n"
        assert compact_css(text) == "body{margin:0;color:red}"

    def test_compact_css_keeps_license(self):
        assert compact_css("/*! MIT */ a { b: c; }").startswith("/*! MIT */")

    def test_compact_js(self):
        text = "// comment\nfunction a() {\n\n    return 1;\n}\n//# sourceMappingURL=x\n"
        assert compact_js(text) == "function a() {\nreturn 1;\n}\n//# sourceMappingURL=x"

    @pytest.mark.parametrize("func,text", [
        (compact_css, "/* a */\nbody {\n    color: red;\n}\n\n.x  >  .y { margin : 0 ; }\n"),
        (compact_js, "// a\nvar x = 1;\n\n    // indented\n    var y = 2;\n"),
    ])
    def test_minified_not_larger(self, func, text):
        assert len(func(text)) <= len(text)


class TestLinters:
    """Tests for lint_styles and lint_scripts."""

    def test_clean_stylesheet(self):
        assert list(lint_styles(Artifact('a.css', b"a {\n  color: red;\n}\n"))) == []

    def test_style_findings(self):
        text = b"a { color: red !important; }  \n.b {}\n"
        rules = [f.rule for f in lint_styles(Artifact('a.css', text))]
        assert rules == ['trailing-space', 'important', 'empty-rules']

    def test_mixed_indent(self):
        findings = list(lint_scripts(Artifact('a.js', b"\t  var a;\n")))
        assert findings[0].rule == 'mixed-indent'
        assert findings[0].line == 1

    def test_debugger(self):
        findings = list(lint_scripts(Artifact('a.js', b"var a;\ndebugger;\n")))
        assert [(f.line, f.rule) for f in findings] == [(2, 'debug')]
