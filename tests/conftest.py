import importlib.util
import json
import os
from decimal import Decimal
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
LAMBDA_DIR = ROOT / "lambda"

# boto3 clients are created at import time by s3_utils
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-1")

TEMPLATE_MARK = "LETTERHEAD MARK"


@pytest.fixture
def letterhead_path(tmp_path):
    """A4 letterhead with a coloured band and a marker string, drawn with reportlab."""
    from reportlab.lib.pagesizes import A4
    from reportlab.pdfgen import canvas

    path = tmp_path / "letterhead.pdf"
    c = canvas.Canvas(str(path), pagesize=A4)
    width, height = A4
    c.setFillColorRGB(0.176, 0.333, 0.455)
    c.rect(0, height - 50, width, 50, fill=1, stroke=0)
    c.setFillColorRGB(0.137, 0.122, 0.125)
    c.setFont("Helvetica", 8)
    c.drawString(50, 20, TEMPLATE_MARK)
    c.save()
    return path


@pytest.fixture
def template(letterhead_path):
    from pdf_template import FontSet, load_template

    return load_template(str(letterhead_path), fonts=FontSet())


@pytest.fixture
def generator(template):
    from pdf_invoice_generator import InvoicePDFGenerator

    return InvoicePDFGenerator(template=template)


@pytest.fixture
def fixed_rates():
    """Rate provider returning EUR-based rates without a network call."""
    rates = {"USD": Decimal("1.08"), "GBP": Decimal("0.86")}
    return lambda: dict(rates)


@pytest.fixture
def handler_env(monkeypatch, letterhead_path, fixed_rates):
    import currency_utils

    monkeypatch.setenv("LETTERHEAD_TEMPLATE_PATH", str(letterhead_path))
    monkeypatch.delenv("PDF_BODY_FONT_PATH", raising=False)
    monkeypatch.delenv("PDF_BOLD_FONT_PATH", raising=False)
    monkeypatch.delenv("REPORTS_BUCKET", raising=False)
    monkeypatch.setattr(currency_utils, "fetch_exchange_rates", fixed_rates)


@pytest.fixture
def make_event():
    def _make(body=None, query=None, raw_body=None):
        event = {
            "httpMethod": "POST",
            "headers": {"Content-Type": "application/json"},
            "queryStringParameters": query,
            "body": raw_body if raw_body is not None else (json.dumps(body) if body is not None else None),
        }
        return event
    return _make


@pytest.fixture
def load_handler():
    """Import lambda/<name>/main.py; the directory names are not importable."""
    def _load(name):
        path = LAMBDA_DIR / name / "main.py"
        module_name = "handler_" + name.replace("-", "_")
        spec = importlib.util.spec_from_file_location(module_name, path)
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        return module
    return _load


def response_body(response):
    return json.loads(response["body"])
