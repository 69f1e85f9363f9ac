"""Tests for model reply parsing and prompt rendering."""

import json

from src.llm.analysis import parse_analysis_reply, strip_code_fences
from src.llm.prompts.diagnostic_prompt import build_user_content, build_user_text
from src.schemas.diagnostic import AIAnalysis, AnalysisRequest


def _reply(**overrides):
    data = {
        "resume_probleme": "Bougie défectueuse",
        "causes_probables": [{"cause": "Bougie cylindre 2", "probabilite": 0.6}],
        "tests_a_faire": ["Permuter les bobines"],
        "logique_diagnostic": "P0302 isolé",
        "attention": "",
    }
    data.update(overrides)
    return data


class TestStripCodeFences:
    def test_plain_text_untouched(self):
        assert strip_code_fences('{"a": 1}') == '{"a": 1}'

    def test_json_fence(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_bare_fence(self):
        assert strip_code_fences('```\n{"a": 1}\n```\n') == '{"a": 1}'


class TestParseAnalysisReply:
    def test_valid_reply(self):
        analysis, degraded = parse_analysis_reply(json.dumps(_reply()))
        assert degraded is False
        assert analysis.causes_probables[0].probabilite == 0.6

    def test_keeps_model_ranking_order(self):
        causes = [
            {"cause": "B", "probabilite": 0.3},
            {"cause": "A", "probabilite": 0.5},
        ]
        analysis, _ = parse_analysis_reply(json.dumps(_reply(causes_probables=causes)))
        assert [c.cause for c in analysis.causes_probables] == ["B", "A"]

    def test_percent_probabilities_are_normalized(self):
        causes = [{"cause": "A", "probabilite": 75}]
        analysis, degraded = parse_analysis_reply(json.dumps(_reply(causes_probables=causes)))
        assert degraded is False
        assert analysis.causes_probables[0].probabilite == 0.75

    def test_out_of_range_probability_degrades(self):
        causes = [{"cause": "A", "probabilite": -0.2}]
        analysis, degraded = parse_analysis_reply(json.dumps(_reply(causes_probables=causes)))
        assert degraded is True

    def test_missing_attention_is_allowed(self):
        data = _reply()
        del data["attention"]
        analysis, degraded = parse_analysis_reply(json.dumps(data))
        assert degraded is False
        assert analysis.attention is None

    def test_invalid_json_falls_back(self):
        raw = "```json\n{\"resume_probleme\": \"tronqué\"\n```"
        analysis, degraded = parse_analysis_reply(raw)
        assert degraded is True
        assert analysis == AIAnalysis.fallback(raw)
        assert analysis.logique_diagnostic == raw

    def test_empty_reply_falls_back(self):
        analysis, degraded = parse_analysis_reply("")
        assert degraded is True
        assert analysis.logique_diagnostic == ""


class TestPromptRendering:
    def _request(self, **overrides):
        data = {
            "sessionId": "5b0d7c1e-2a43-4b4f-9d37-3f1f7b8f2a10",
            "vehicleData": {"make": "Peugeot", "model": "308", "year": 2015},
            "symptoms": ["Claquement à froid"],
            "dtcCodes": [],
            "testsAlreadyDone": ["Compression OK"],
            "imageUrls": [],
        }
        data.update(overrides)
        return AnalysisRequest.model_validate(data)

    def test_text_is_deterministic(self):
        assert build_user_text(self._request()) == build_user_text(self._request())

    def test_text_sections(self):
        text = build_user_text(self._request())
        assert "- Véhicule : Peugeot 308 2015, Moteur : Non spécifié" in text
        assert "- Symptômes client : Claquement à froid" in text
        assert "- Codes défaut : Aucun" in text
        assert "- Tests déjà faits : Compression OK" in text

    def test_engine_description_preferred_over_code(self):
        request = self._request(
            vehicleData={
                "make": "Peugeot",
                "model": "308",
                "year": 2015,
                "engine_code": "EP6",
                "engine_description": "1.6 THP 156",
            }
        )
        assert "Moteur : 1.6 THP 156" in build_user_text(request)

    def test_image_blocks_follow_text(self):
        urls = ["https://images.test/c.jpg", "https://images.test/a.jpg"]
        content = build_user_content(self._request(imageUrls=urls))
        assert len(content) == 3
        assert content[1] == {"type": "image", "source": {"type": "url", "url": urls[0]}}
        assert content[2]["source"]["url"] == urls[1]
