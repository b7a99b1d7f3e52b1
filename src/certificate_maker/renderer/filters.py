"""Jinja2 template filters and environment setup."""

from __future__ import annotations

import base64
import io
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined


def nl2br(text: str) -> str:
    """Convert newlines to <br> tags."""
    if not text:
        return ""
    return text.replace("\n", "<br>\n")


def data_uri(path: str | Path) -> str:
    """Embed a local image as a base64 data URI.

    TIFF images are converted to PNG first since Chromium cannot show them.
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix in (".tif", ".tiff"):
        from PIL import Image
        img = Image.open(path)
        buf = io.BytesIO()
        img.save(buf, format="PNG")
        data = base64.b64encode(buf.getvalue()).decode()
        return f"data:image/png;base64,{data}"
    elif suffix == ".png":
        data = base64.b64encode(path.read_bytes()).decode()
        return f"data:image/png;base64,{data}"
    elif suffix == ".svg":
        data = base64.b64encode(path.read_bytes()).decode()
        return f"data:image/svg+xml;base64,{data}"
    else:
        data = base64.b64encode(path.read_bytes()).decode()
        return f"data:image/jpeg;base64,{data}"


def setup_jinja_env(template_dir: str | Path) -> Environment:
    """Create the Jinja2 environment used to compile certificate templates.

    Undefined names raise instead of rendering as blanks, so a misspelt
    column fails the record rather than printing an empty certificate.
    """
    env = Environment(
        loader=FileSystemLoader(str(template_dir)),
        undefined=StrictUndefined,
        autoescape=False,  # Template authors write the HTML themselves
    )
    env.filters["nl2br"] = nl2br
    env.filters["data_uri"] = data_uri
    return env
