"""Filename-based document type classifier.

Keyword matching only. The confidence score is a display-only mock and must
never drive a decision.
"""

import random
from typing import Any, Callable, Dict, List, Optional, Tuple

from taxportal.config import settings
from taxportal.models.db_models import DocumentType, local_now

# Checked in order; first match wins. Specific forms precede generic substrings
# ("1099-nec" before "1099-b", "1098" after every 1099 variant).
_KEYWORD_RULES: List[Tuple[Callable[[str], bool], DocumentType]] = [
    (lambda name: "w2" in name or "w-2" in name, DocumentType.W2),
    (lambda name: "1099-nec" in name or "1099nec" in name, DocumentType.FORM_1099_NEC),
    (lambda name: "1099-k" in name or "1099k" in name, DocumentType.FORM_1099_K),
    (lambda name: "1099-int" in name or "1099int" in name, DocumentType.FORM_1099_INT),
    (lambda name: "1099-div" in name or "1099div" in name, DocumentType.FORM_1099_DIV),
    (lambda name: "1099-b" in name or "1099b" in name, DocumentType.FORM_1099_B),
    (lambda name: "k-1" in name or "k1" in name, DocumentType.K1),
    (lambda name: "brokerage" in name, DocumentType.BROKERAGE),
    (lambda name: "1098" in name or "mortgage" in name, DocumentType.MORTGAGE_INTEREST),
    (lambda name: "property" in name and "tax" in name, DocumentType.PROPERTY_TAX),
    (lambda name: "donation" in name or "charitable" in name, DocumentType.CHARITABLE_DONATION),
    (lambda name: "medical" in name, DocumentType.MEDICAL_EXPENSE),
    (lambda name: "8879" in name, DocumentType.FORM_8879),
    (lambda name: "engagement" in name, DocumentType.ENGAGEMENT_LETTER),
]

DOCUMENT_KEYWORDS: Dict[str, List[str]] = {
    "w2": ["wages", "salary", "federal tax withheld", "employer"],
    "1099_nec": ["nonemployee compensation", "contractor", "freelance"],
    "1099_int": ["interest income", "bank", "savings"],
    "1099_div": ["dividends", "capital gains", "investment"],
    "mortgage_interest": ["mortgage", "interest paid", "1098"],
    "property_tax": ["property tax", "real estate", "assessment"],
    "charitable_donation": ["donation", "charitable", "contribution"],
    "medical_expense": ["medical", "healthcare", "prescription"],
    "other": ["document", "tax related"],
}

CONFIDENCE_RANGE = (0.75, 0.99)


def classify(filename: Optional[str]) -> str:
    """Return the document type value inferred from a filename."""
    lower = (filename or "").lower()
    for matches, doc_type in _KEYWORD_RULES:
        if matches(lower):
            return doc_type.value
    return DocumentType.OTHER.value


def get_document_keywords(document_type: str) -> List[str]:
    return list(DOCUMENT_KEYWORDS.get(document_type, DOCUMENT_KEYWORDS["other"]))


def build_ai_classification(
    filename: str,
    document_type: str,
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    """
    Build the mock classification payload shown alongside a document.

    Args:
        filename: Original filename
        document_type: Type the document was stored with
        rng: Random source (injectable for tests)

    Returns:
        JSON-serializable classification metadata
    """
    source = rng or random
    low, high = CONFIDENCE_RANGE
    confidence = round(source.uniform(low, high), 2)

    return {
        "suggestedType": document_type,
        "confidence": confidence,
        "taxYear": settings.TAX_YEAR,
        "extractedFields": {
            "filename": filename,
            "analyzedAt": local_now().isoformat(),
            "source": "ai_classification_v1",
        },
        "keywords": get_document_keywords(document_type),
    }
