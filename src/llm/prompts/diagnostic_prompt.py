"""Prompt for the multimodal diagnostic analysis."""

from __future__ import annotations

from src.schemas.diagnostic import AnalysisRequest, FaultCode

DIAGNOSTIC_SYSTEM_PROMPT = """Rôle :
Tu es un assistant de diagnostic pour mécaniciens automobiles. Ton but est de trouver la panne vite, sans faire changer de pièces inutilement.

Règles :
1. Tu raisonnes avec logique et tu proposes le minimum de pièces à remplacer. Chaque remplacement doit être justifié.
2. Tu écris en français simple et direct, avec des phrases courtes.
3. Tu analyses les photos fournies comme des indices. Relie ce que tu vois aux codes défaut et aux symptômes.
4. Tu ne proposes jamais de modification interdite du système antipollution (suppression EGR, FAP, catalyseur, reprogrammation AdBlue, etc.).
5. Tu expliques pourquoi tu proposes chaque test.
6. Tu classes les causes de la plus probable à la moins probable.
7. Tu termines toujours par trois sections : "Tests à faire", "Logique du diagnostic" (résumé simple) et "Attention" (risque pour le moteur ou la sécurité).

Réponds UNIQUEMENT avec un objet JSON valide, sans texte avant ou après.
Structure du JSON :
{
  "resume_probleme": "Description claire du problème probable",
  "causes_probables": [
    {"cause": "Cause la plus probable", "probabilite": 0.75},
    {"cause": "Cause suivante", "probabilite": 0.40}
  ],
  "tests_a_faire": [
    "Test concret 1",
    "Test concret 2"
  ],
  "logique_diagnostic": "Résumé simple du raisonnement",
  "attention": "Risque pour le moteur ou la sécurité, sinon chaîne vide"
}"""

NONE_MARKER = "Aucun"


def format_fault_code(fault_code: FaultCode) -> str:
    if fault_code.description:
        return f"{fault_code.code} - {fault_code.description}"
    return fault_code.code


def build_user_text(request: AnalysisRequest) -> str:
    """Text part of the user message. Same input, same text."""
    vehicle = request.vehicle_data
    engine = vehicle.engine_description or vehicle.engine_code or "Non spécifié"

    symptoms = ", ".join(request.symptoms) or NONE_MARKER
    codes = ", ".join(format_fault_code(dtc) for dtc in request.dtc_codes) or NONE_MARKER
    tests = ", ".join(request.tests_already_done) or NONE_MARKER

    return (
        "Données d'entrée pour le diagnostic :\n"
        f"- Véhicule : {vehicle.make} {vehicle.model} {vehicle.year}, Moteur : {engine}\n"
        f"- Symptômes client : {symptoms}\n"
        f"- Codes défaut : {codes}\n"
        f"- Tests déjà faits : {tests}\n"
        "\n"
        "Analyse les images fournies et donne ton diagnostic."
    )


def build_user_content(request: AnalysisRequest) -> list[dict]:
    """User message content: the text block, then one image block per URL in order."""
    content: list[dict] = [{"type": "text", "text": build_user_text(request)}]
    for url in request.image_urls:
        content.append({"type": "image", "source": {"type": "url", "url": url}})
    return content
