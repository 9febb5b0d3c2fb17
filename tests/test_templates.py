"""Tests for template rendering."""

from notifications.templates import BrandProfile, extract_variables, render_template, wrap_html


def test_render_missing_binding_becomes_empty():
    assert render_template("Hola {{name}}, debes {{amount}}", {"name": "Ana"}) == "Hola Ana, debes "


def test_render_replaces_every_occurrence():
    assert render_template("{{a}}-{{a}}-{{b}}", {"a": "x", "b": 2}) == "x-x-2"


def test_render_none_value_is_empty():
    assert render_template("[{{a}}]", {"a": None}) == "[]"


def test_render_leaves_non_word_braces_untouched():
    assert render_template("{{ a }} {{a-b}}", {"a": "x"}) == "{{ a }} {{a-b}}"


def test_render_is_deterministic():
    payload = {"customer_name": "Ana", "amount": "1,500.00"}
    text = "{{customer_name}} {{amount}}"
    assert render_template(text, payload) == render_template(text, dict(payload))


def test_extract_variables_union_of_subject_and_body():
    assert extract_variables("Asunto {{a}}", "Cuerpo {{a}} y {{b}}") == {"a", "b"}


def test_extract_variables_handles_empty_texts():
    assert extract_variables("", None, "sin variables") == set()


def test_wrap_html_converts_newlines_and_escapes_title():
    html = wrap_html("Pago <urgente>", "Linea 1\nLinea 2")

    assert "Linea 1<br>Linea 2" in html
    assert "<title>Pago &lt;urgente&gt;</title>" in html
    assert "ALARMAS ADZ" in html


def test_wrap_html_uses_brand_profile():
    brand = BrandProfile(company_name="Acme", tagline="Seguridad", address_lines=("Calle 1",), language="en")

    html = wrap_html("Hi", "Body", brand)

    assert '<html lang="en">' in html
    assert "ACME" in html
    assert "Calle 1" in html


def test_render_escape_applies_to_values_only():
    rendered = render_template("<p>Hola {{name}}</p>", {"name": "Ana & <b>Beto</b>"}, escape=True)

    assert rendered == "<p>Hola Ana &amp; &lt;b&gt;Beto&lt;/b&gt;</p>"


def test_wrap_html_escapes_every_brand_field():
    brand = BrandProfile(
        company_name="A&B",
        tagline="<i>t</i>",
        address_lines=("Calle <1>",),
        phone_line="Tel <x>",
        footer_note="No & responder",
    )

    html = wrap_html("Hi", "Body", brand)

    for raw in ("<i>", "Calle <1>", "Tel <x>", "No & responder"):
        assert raw not in html
    assert "Tel &lt;x&gt;" in html
    assert "No &amp; responder" in html
