"""Tests for push templating."""

from django.test import SimpleTestCase, override_settings

from apps.notify.templating import render_push_content, render_template

CONTEXT = {
    "incident": {"alarm_name": "HighCPU", "severity": "warning"},
    "emoji": "\U0001F7E1",
    "acker": "Bob",
    "trigger_note": "",
    "badge": 1,
}


class RenderTemplateTests(SimpleTestCase):
    def test_render_inline_template(self):
        self.assertEqual(render_template("Hello {{ name }}", {"name": "World"}), "Hello World")

    def test_render_file_template(self):
        out = render_template("file:new_incident_body.j2", {"trigger_note": "Disk at 95%"})
        self.assertEqual(out, "Disk at 95%")

    def test_file_template_without_extension(self):
        self.assertEqual(render_template("file:new_incident_body", {}), "New alarm triggered")

    def test_dict_source(self):
        self.assertEqual(render_template({"type": "inline", "template": "{{ 1 + 1 }}"}, {}), "2")

    def test_empty_source_returns_none(self):
        self.assertIsNone(render_template("", {}))
        self.assertIsNone(render_template({"type": "inline"}, {}))

    def test_missing_file_raises(self):
        with self.assertRaises(ValueError):
            render_template("file:nope.j2", {})

    def test_syntax_error_raises(self):
        with self.assertRaises(ValueError):
            render_template("{% if %}", {})

    def test_unsupported_source_raises(self):
        with self.assertRaises(ValueError):
            render_template(42, {})


class RenderPushContentTests(SimpleTestCase):
    def test_defaults(self):
        title, body = render_push_content("acknowledged", CONTEXT)
        self.assertEqual(title, "✓ Acknowledged: HighCPU")
        self.assertEqual(body, "Acked by Bob")

    @override_settings(PUSH_TEMPLATES={"resolved": {"body": "Closed: {{ incident.alarm_name }}"}})
    def test_override_replaces_one_part(self):
        title, body = render_push_content("resolved", CONTEXT)
        self.assertEqual(title, "✓ Resolved: HighCPU")
        self.assertEqual(body, "Closed: HighCPU")

    @override_settings(PUSH_TEMPLATES={"resolved": {"title": "{% broken"}})
    def test_broken_override_falls_back_to_default(self):
        with self.assertLogs("apps.notify.templating", level="ERROR"):
            title, _ = render_push_content("resolved", CONTEXT)
        self.assertEqual(title, "✓ Resolved: HighCPU")
