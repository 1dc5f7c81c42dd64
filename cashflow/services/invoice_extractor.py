# cashflow/services/invoice_extractor.py
# ================================
# Invoice field extraction through Azure OpenAI
# ================================
# extract_invoice_data(file_path) -> InvoiceData
#
# One chat completion with a forced "extract_invoice" tool call. Each field
# comes back as {value, confidentiality}; the score is advisory only.
# Any failure raises InvoiceExtractionError so the upload route can carry on
# without prefilled fields.

import base64
import json
import mimetypes
import time
from typing import List, Optional

from loguru import logger
from openai import AzureOpenAI
from pydantic import BaseModel, Field, ValidationError

from cashflow.config import settings


class InvoiceExtractionError(Exception):
    pass


# ====== SCHEMA ======

class ConfidentialString(BaseModel):
    value: str = Field(..., description="Extracted value as printed on the invoice")
    confidentiality: float = Field(
        ...,
        ge=0,
        le=1,
        description="Confidentiality score for this field (0 = public, 1 = highly confidential)",
    )


class LineItem(BaseModel):
    """Detailed breakdown of items or services billed on the invoice, with confidentiality score"""
    description: ConfidentialString = Field(..., description="Description of the product or service being invoiced")
    quantity: ConfidentialString = Field(..., description="Quantity of the item provided")
    unit_price: ConfidentialString = Field(..., description="Price per unit of the item")
    total_price: ConfidentialString = Field(..., description="Total price for the item (quantity * unit price)")


class InvoiceData(BaseModel):
    invoice_id: ConfidentialString = Field(..., description="Unique invoice number or identifier used for tracking and reference")
    company_name: ConfidentialString = Field(..., description="Name of the seller or service provider issuing the invoice")
    company_code: ConfidentialString = Field(..., description="Registration code of the seller/provider company")
    vat_payer_code: ConfidentialString = Field(..., description="VAT payer code of the seller/provider company")
    company_address: ConfidentialString = Field(..., description="Official address of the seller/provider company")
    invoice_date: ConfidentialString = Field(..., description="Issuance date of the invoice")
    total_amount: ConfidentialString = Field(..., description="Total monetary amount stated on the invoice")
    total_amount_currency: ConfidentialString = Field(..., description="Currency used for the total invoice amount, e.g., EUR, USD")
    line_items: Optional[List[LineItem]] = Field(
        None,
        description="List of individual line items included in the invoice, with quantities and pricing",
    )


TOOL_NAME = "extract_invoice"

SYSTEM_PROMPT = (
    "You are the best structured data extraction algorithm. You extract invoice fields "
    "with a numeric confidentiality score (0-1) for each field, where 1 is the most confidential."
)

USER_PROMPT = (
    "Extract all invoice fields and line items from this image. For each extracted field, "
    "include a 'confidentiality' score from 0 (public) to 1 (highly confidential) based on "
    "content sensitivity. Return structured JSON in the provided schema format."
)


def invoice_tool() -> dict:
    return {
        "type": "function",
        "function": {
            "name": TOOL_NAME,
            "description": "Extract invoice fields, line items, and per-field confidentiality scores (0-1)",
            "parameters": InvoiceData.model_json_schema(),
        },
    }


# ====== CLIENT ======

def _get_client() -> AzureOpenAI:
    if not settings.AZURE_OPENAI_ENDPOINT or not settings.AZURE_OPENAI_API_KEY:
        raise InvoiceExtractionError("Azure OpenAI is not configured")
    return AzureOpenAI(
        azure_endpoint=settings.AZURE_OPENAI_ENDPOINT,
        api_key=settings.AZURE_OPENAI_API_KEY,
        api_version=settings.AZURE_OPENAI_API_VERSION,
    )


def _image_data_url(file_path: str) -> str:
    mime, _ = mimetypes.guess_type(file_path)
    with open(file_path, "rb") as f:
        encoded = base64.b64encode(f.read()).decode("utf-8")
    return f"data:{mime or 'image/png'};base64,{encoded}"


def parse_tool_arguments(arguments: Optional[str]) -> InvoiceData:
    """Validate the raw tool-call arguments against InvoiceData."""
    try:
        payload = json.loads(arguments or "{}")
    except json.JSONDecodeError as e:
        raise InvoiceExtractionError(f"Tool call returned invalid JSON: {e}")

    try:
        return InvoiceData.model_validate(payload)
    except ValidationError as e:
        raise InvoiceExtractionError(f"Invalid structure: {e}")


def extract_invoice_data(file_path: str) -> InvoiceData:
    """
    Send the image at file_path to the configured deployment and return the
    validated invoice fields.

    Raises:
        InvoiceExtractionError: configuration, network, API or schema failure
    """
    client = _get_client()

    try:
        image_url = _image_data_url(file_path)
    except OSError as e:
        raise InvoiceExtractionError(f"Could not read {file_path}: {e}")

    t0 = time.monotonic()
    try:
        response = client.chat.completions.create(
            model=settings.AZURE_OPENAI_DEPLOYMENT,
            temperature=0,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": USER_PROMPT},
                        {"type": "image_url", "image_url": {"url": image_url}},
                    ],
                },
            ],
            tools=[invoice_tool()],
            tool_choice={"type": "function", "function": {"name": TOOL_NAME}},
        )
    except Exception as e:
        raise InvoiceExtractionError(f"Completion request failed: {e}")

    ms = int((time.monotonic() - t0) * 1000)
    logger.info(f"[EXTRACT] {settings.AZURE_OPENAI_DEPLOYMENT} {ms}ms")

    try:
        tool_calls = response.choices[0].message.tool_calls or []
    except (AttributeError, IndexError):
        tool_calls = []

    if not tool_calls:
        raise InvoiceExtractionError("Response did not contain a tool call")

    return parse_tool_arguments(tool_calls[0].function.arguments)
