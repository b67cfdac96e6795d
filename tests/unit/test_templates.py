import pytest

from procfixture.exceptions import TemplateError
from procfixture.process.templates import flatten_args, merge_args, render_template, render_templates

pytestmark = pytest.mark.unit

CONTEXT = {"url": "http://127.0.0.1:2379", "host": "127.0.0.1", "port": 2379, "data_dir": "/tmp/etcd"}


class TestRender:
    def test_substitutes_named_placeholders(self):
        rendered = render_templates(
            ["--listen-client-urls={url}", "--data-dir={data_dir}", "--port={port}", "--plain"], CONTEXT
        )
        assert rendered == [
            "--listen-client-urls=http://127.0.0.1:2379",
            "--data-dir=/tmp/etcd",
            "--port=2379",
            "--plain",
        ]

    def test_escaped_braces_are_kept_literally(self):
        assert render_template("--format={{json}}", CONTEXT) == "--format={json}"

    def test_unknown_placeholder_is_rejected(self):
        with pytest.raises(TemplateError, match="unknown placeholder 'cert_dir'") as excinfo:
            render_template("--cert-dir={cert_dir}", CONTEXT)
        assert excinfo.value.template == "--cert-dir={cert_dir}"
        assert excinfo.value.stage == "render_args"

    @pytest.mark.parametrize("template", ["--x={}", "--x={0}"])
    def test_positional_placeholders_are_rejected(self, template):
        with pytest.raises(TemplateError, match="positional"):
            render_template(template, CONTEXT)

    @pytest.mark.parametrize("template", ["--x={url", "--x=url}"])
    def test_malformed_templates_are_rejected(self, template):
        with pytest.raises(TemplateError, match="malformed"):
            render_template(template, CONTEXT)

    def test_bad_attribute_access_is_a_template_error(self):
        with pytest.raises(TemplateError, match="failed to render"):
            render_template("--x={url.nope}", CONTEXT)


class TestMerge:
    DEFAULTS = ("--listen-client-urls={url}", "--data-dir={data_dir}")

    def test_no_extra_args_returns_the_defaults(self):
        assert merge_args(self.DEFAULTS, None) == list(self.DEFAULTS)

    def test_extra_flag_replaces_the_default_in_place(self):
        merged = merge_args(self.DEFAULTS, {"data-dir": "/srv/etcd"})
        assert merged == ["--listen-client-urls={url}", "--data-dir=/srv/etcd"]

    def test_new_flags_are_appended_sorted(self):
        merged = merge_args(self.DEFAULTS, {"--snapshot-count": "10", "auto-compaction-retention": "1"})
        assert merged[2:] == ["--auto-compaction-retention=1", "--snapshot-count=10"]

    def test_inputs_are_not_modified(self):
        extra = {"data-dir": "/srv/etcd"}
        merge_args(self.DEFAULTS, extra)
        assert extra == {"data-dir": "/srv/etcd"}
        assert self.DEFAULTS == ("--listen-client-urls={url}", "--data-dir={data_dir}")

    def test_flatten_strips_leading_dashes(self):
        assert flatten_args({"--v": "4", "log-level": "debug"}) == ["--log-level=debug", "--v=4"]
        assert flatten_args({}) == []
