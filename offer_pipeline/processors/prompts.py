"""
Prompt texts for the completion service.

Offers are German documents, so instructions are written in German to keep
terminology ("EZ", "mtl.", "Sonderzahlung") unambiguous for the model.
"""

from typing import Optional

EXTRACTION_SYSTEM_PROMPT = """Du bist ein Experte für die Analyse von deutschen Fahrzeug-Leasing- und Verkaufsangeboten.

Extrahiere aus dem gegebenen PDF-Text alle relevanten Fahrzeug-, Leasing-, Händler- und Servicedaten und gib sie als JSON zurück.

REGELN:
- Alle Preise in Euro, nur Zahlen ohne Währungssymbol
- Kilometerangaben ohne Tausenderpunkte (25000 statt 25.000)
- Leistung in kW und PS, wenn verfügbar
- Deutsche Abkürzungen korrekt deuten ("mtl." = monatlich, "EZ" = Erstzulassung)
- Fehlt ein Wert oder ist er unsicher: null
- confidence_score: 0-100, abhängig von Textqualität und Anzahl gefundener Daten

Extrahiere nur, was eindeutig im Text steht. Nichts raten, nichts erfinden."""

EXTRACTION_SCHEMA = """{
  "vehicle": {
    "make": "string | null",
    "model": "string | null",
    "variant": "string | null",
    "year": "number | null",
    "mileage": "number | null",
    "fuel_type": "string | null",
    "transmission": "string | null",
    "power_kw": "number | null",
    "power_ps": "number | null",
    "color": "string | null",
    "doors": "number | null",
    "seats": "number | null",
    "first_registration": "string | null"
  },
  "leasing": {
    "monthly_rate": "number | null",
    "duration_months": "number | null",
    "annual_mileage": "number | null",
    "down_payment": "number | null",
    "final_payment": "number | null",
    "total_cost": "number | null",
    "interest_rate": "number | null",
    "purchase_price": "number | null"
  },
  "dealer": {
    "name": "string | null",
    "address": "string | null",
    "city": "string | null",
    "postal_code": "string | null",
    "phone": "string | null",
    "email": "string | null",
    "contact_person": "string | null"
  },
  "services": {
    "insurance_included": "boolean | null",
    "maintenance_included": "boolean | null",
    "tires_included": "boolean | null",
    "gap_protection": "boolean | null",
    "warranty_extension": "boolean | null"
  },
  "metadata": {
    "confidence_score": "number (0-100)"
  }
}"""

EXTRACTION_USER_PROMPT = (
    "Analysiere diesen PDF-Text und extrahiere alle Daten im folgenden JSON-Schema:\n\n"
    + EXTRACTION_SCHEMA
    + "\n\nPDF-Text zur Analyse:\n\n"
)

FIELD_SYSTEM_PROMPT = (
    "Du bist ein Experte für die Extraktion von Fahrzeugdaten aus deutschen Angebots-PDFs."
)


def build_extraction_prompt(text: str) -> str:
    return EXTRACTION_USER_PROMPT + text


def build_field_prompt(text: str, field_name: str, description: Optional[str] = None) -> str:
    description_line = f"Beschreibung: {description}\n" if description else ""
    return (
        f'Extrahiere das Feld "{field_name}" aus diesem Fahrzeugangebot.\n'
        f"{description_line}\n"
        "Regeln:\n"
        "- Gib nur den Wert zurück, keine Erklärung\n"
        "- Bei Zahlen: nur Ziffern ohne Einheiten\n"
        '- Bei Boolean: "true" oder "false"\n'
        '- Wenn nicht gefunden: "null"\n\n'
        f"Text:\n{text}\n"
    )


def build_choice_prompt(
    text: str,
    field_name: str,
    options: list[str],
    context: Optional[dict[str, str]] = None,
) -> str:
    context_block = ""
    if context:
        lines = "\n".join(f"{key}: {value}" for key, value in context.items() if value)
        if lines:
            context_block = f"Fahrzeugkontext:\n{lines}\n\n"
    option_lines = "\n".join(f"- {opt}" for opt in options)
    return (
        f"{context_block}"
        f'Bitte wähle die passende Option für "{field_name}" aus dieser Liste:\n'
        f"{option_lines}\n\n"
        "WICHTIG: Antworte NUR mit EINER Option aus der obigen Liste. KEINE Erklärung.\n"
        'Wenn keine Option passt: "null"\n\n'
        f"Text:\n{text}\n"
    )
