"""Template rendering helpers for automatic notifications."""

from __future__ import annotations

from dataclasses import dataclass
import html
import re
from typing import Any, Mapping

PLACEHOLDER_RE = re.compile(r"{{(\w+)}}")


@dataclass(slots=True, frozen=True)
class BrandProfile:
    """Static branding used for the HTML shell around every e-mail."""

    company_name: str = "Alarmas ADZ"
    tagline: str = "Sistemas de Seguridad Electrónica"
    address_lines: tuple[str, ...] = (
        "Bustamante #1 Int. A, Col. Centro",
        "Ciudad Guzmán, Jalisco, CP 49000",
    )
    phone_line: str = "Tel: +52 (341) 41 25850 | +52 (341) 41 24070 | +52 (341) 41 29847"
    language: str = "es"
    accent_color: str = "#DC2626"
    footer_note: str = "Este correo fue enviado automáticamente. Por favor no responder a este mensaje."


def render_template(template: str, payload: Mapping[str, Any], *, escape: bool = False) -> str:
    """Fill every {{name}} placeholder; unbound names render as empty text.

    With ``escape`` the bound values are HTML-escaped, the template text is not.
    """

    def _replace(match: re.Match[str]) -> str:
        value = payload.get(match.group(1))
        if value is None:
            return ""
        return html.escape(str(value)) if escape else str(value)

    return PLACEHOLDER_RE.sub(_replace, template or "")


def extract_variables(*texts: str | None) -> set[str]:
    """Return every placeholder name referenced by the given texts."""
    names: set[str] = set()
    for text in texts:
        if text:
            names.update(PLACEHOLDER_RE.findall(text))
    return names


def wrap_html(subject: str, body: str, brand: BrandProfile | None = None) -> str:
    brand = brand or BrandProfile()
    html_body = (body or "").replace("\n", "<br>")
    address = "<br>\n        ".join(html.escape(line) for line in brand.address_lines)
    accent = brand.accent_color
    return f"""<!DOCTYPE html>
<html lang="{html.escape(brand.language)}">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{html.escape(subject or "")}</title>
  <style>
    body {{ font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; line-height: 1.6; color: #333;
           max-width: 600px; margin: 0 auto; padding: 0; background-color: #f5f5f5; }}
    .container {{ background-color: white; border-radius: 10px; overflow: hidden; box-shadow: 0 2px 10px rgba(0,0,0,0.1); }}
    .header {{ background: {accent}; color: white; padding: 30px 20px; text-align: center; }}
    .header h1 {{ margin: 0; font-size: 28px; font-weight: bold; }}
    .header p {{ margin: 10px 0 0 0; font-size: 16px; opacity: 0.9; }}
    .content {{ padding: 40px 30px; }}
    .content p {{ margin: 15px 0; font-size: 16px; line-height: 1.8; }}
    .footer {{ background-color: #f9fafb; padding: 30px 20px; text-align: center; border-top: 4px solid {accent}; }}
    .footer-company {{ color: {accent}; font-size: 20px; font-weight: bold; margin: 0 0 10px 0; }}
    .footer-subtitle, .footer-address {{ color: #666; font-size: 13px; margin: 10px 0; }}
    .footer-contact {{ color: {accent}; font-size: 13px; font-weight: 600; margin: 10px 0; }}
  </style>
</head>
<body>
  <div class="container">
    <div class="header">
      <h1>{html.escape(brand.company_name.upper())}</h1>
      <p>{html.escape(brand.tagline)}</p>
    </div>
    <div class="content">
      {html_body}
    </div>
    <div class="footer">
      <p class="footer-company">{html.escape(brand.company_name.upper())}</p>
      <p class="footer-subtitle">{html.escape(brand.tagline)}</p>
      <p class="footer-address">
        {address}
      </p>
      <p class="footer-contact">{html.escape(brand.phone_line)}</p>
      <p style="margin-top: 20px; font-size: 12px; color: #999;">{html.escape(brand.footer_note)}</p>
    </div>
  </div>
</body>
</html>
"""


__all__ = [
    "BrandProfile",
    "PLACEHOLDER_RE",
    "extract_variables",
    "render_template",
    "wrap_html",
]
