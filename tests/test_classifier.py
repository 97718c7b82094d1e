"""Tests for classification and the categorization oracle."""

import os
from unittest.mock import MagicMock, Mock, patch

import pytest

from filezen.core.classifier import Classifier
from filezen.core.oracle import (
    GeminiOracle, NullOracle, create_oracle, parse_oracle_response
)
from filezen.core.config import AppConfig, OracleConfig
from filezen.core.models import Category, FileRecord
from filezen.core.exceptions import OracleError


def make_records(*names):
    return [FileRecord.create(name, name, 1, 0) for name in names]


class TestClassifier:
    """Test category resolution order."""

    def test_fallback_when_oracle_has_no_answer(self):
        oracle = Mock()
        oracle.classify.return_value = {}
        records = make_records("x.zip")

        Classifier(oracle).classify(records)

        assert records[0].category is Category.ARCHIVES

    def test_oracle_failure_is_absorbed(self):
        oracle = Mock()
        oracle.classify.side_effect = OracleError("quota exceeded")
        records = make_records("x.zip", "notes")

        result = Classifier(oracle).classify(records)

        assert result == {"x.zip": Category.ARCHIVES, "notes": Category.UNKNOWN}

    def test_oracle_answer_beats_fallback_table(self):
        oracle = Mock()
        oracle.classify.return_value = {"logo.pdf": Category.IMAGES}
        records = make_records("logo.pdf")

        Classifier(oracle).classify(records)

        assert records[0].category is Category.IMAGES

    def test_rule_beats_oracle_and_is_not_sent(self):
        oracle = Mock()
        oracle.classify.return_value = {"a.log": Category.DOCUMENTS, "b.zip": Category.DOCUMENTS}
        records = make_records("a.log", "b.zip")

        Classifier(oracle).classify(records, {"log": Category.JUNK})

        oracle.classify.assert_called_once_with(["b.zip"])
        assert records[0].category is Category.JUNK
        assert records[1].category is Category.DOCUMENTS

    def test_single_batched_call_with_unique_names(self):
        oracle = Mock()
        oracle.classify.return_value = {}
        records = make_records("a.txt", "b.txt")
        records.append(FileRecord.create("a.txt", "sub/a.txt", 1, 0))

        Classifier(oracle).classify(records)

        oracle.classify.assert_called_once_with(["a.txt", "b.txt"])

    def test_no_call_when_everything_has_a_rule(self):
        oracle = Mock()
        Classifier(oracle).classify(make_records("a.txt"), {"txt": Category.CODE})
        oracle.classify.assert_not_called()

    def test_no_call_for_empty_scan(self):
        oracle = Mock()
        assert Classifier(oracle).classify([]) == {}
        oracle.classify.assert_not_called()

    def test_invalid_or_unrequested_answers_ignored(self):
        oracle = Mock()
        oracle.classify.return_value = {"x.zip": "Bogus", "other.bin": "Images"}
        records = make_records("x.zip")

        Classifier(oracle).classify(records)

        assert records[0].category is Category.ARCHIVES

    def test_non_mapping_answer_ignored(self):
        oracle = Mock()
        oracle.classify.return_value = ["x.zip"]
        records = make_records("x.zip")

        Classifier(oracle).classify(records)

        assert records[0].category is Category.ARCHIVES

    def test_unknown_extension(self):
        records = make_records("data.xyz", "Makefile")
        Classifier(NullOracle()).classify(records)
        assert all(record.category is Category.UNKNOWN for record in records)

    def test_classify_names(self):
        result = Classifier(NullOracle()).classify_names(["a.py", "b.MP3"], {"py": Category.JUNK})
        assert result == {"a.py": Category.JUNK, "b.MP3": Category.AUDIO}


class TestParseOracleResponse:
    """Test validation of raw oracle payloads."""

    def test_well_formed(self):
        verdicts = parse_oracle_response('[{"fileName": "a.zip", "category": "Archives"}]')
        assert [(v.name, v.category) for v in verdicts] == [("a.zip", Category.ARCHIVES)]

    def test_code_fence(self):
        payload = '```json\n[{"fileName": "a.mp3", "category": "Audio"}]\n```'
        assert parse_oracle_response(payload)[0].category is Category.AUDIO

    def test_invalid_labels_dropped(self):
        payload = [
            {"fileName": "a.txt", "category": "Documents"},
            {"fileName": "b.txt", "category": "Spreadsheets"},
            {"category": "Images"},
            "c.txt",
        ]
        verdicts = parse_oracle_response(payload)
        assert [v.name for v in verdicts] == ["a.txt"]

    @pytest.mark.parametrize("payload", [None, "", "not json", '{"a": 1}', b"\xff\xfe", 42])
    def test_malformed_payload_yields_nothing(self, payload):
        assert parse_oracle_response(payload) == []


class TestGeminiOracle:
    """Test the Gemini-backed oracle with the client mocked out."""

    @patch("filezen.core.oracle.genai")
    def test_classify(self, mock_genai):
        mock_model = MagicMock()
        mock_model.generate_content.return_value.text = (
            '[{"fileName": "a.zip", "category": "Archives"},'
            ' {"fileName": "b.bin", "category": "Nope"}]'
        )
        mock_genai.GenerativeModel.return_value = mock_model

        oracle = GeminiOracle(api_key="test-key", model="test-model")
        result = oracle.classify(["a.zip", "b.bin"])

        assert result == {"a.zip": Category.ARCHIVES}
        mock_genai.configure.assert_called_once_with(api_key="test-key")
        prompt = mock_model.generate_content.call_args[0][0]
        assert "- a.zip" in prompt
        assert "Archives" in prompt

    @patch("filezen.core.oracle.genai")
    def test_request_failure_raises_oracle_error(self, mock_genai):
        mock_genai.GenerativeModel.return_value.generate_content.side_effect = RuntimeError("timeout")

        oracle = GeminiOracle(api_key="test-key")
        with pytest.raises(OracleError):
            oracle.classify(["a.zip"])

    @patch("filezen.core.oracle.genai")
    def test_circuit_opens_after_repeated_failures(self, mock_genai):
        generate = mock_genai.GenerativeModel.return_value.generate_content
        generate.side_effect = RuntimeError("down")

        oracle = GeminiOracle(api_key="test-key", failure_threshold=2, recovery_timeout=60)
        for _ in range(3):
            with pytest.raises(OracleError):
                oracle.classify(["a.zip"])

        assert generate.call_count == 2

    def test_missing_key(self):
        with pytest.raises(OracleError):
            GeminiOracle(api_key="")


class TestCreateOracle:
    """Test oracle selection from configuration."""

    def test_disabled(self, tmp_path):
        config = AppConfig(oracle=OracleConfig(enabled=False), data_dir=tmp_path)
        assert isinstance(create_oracle(config), NullOracle)

    def test_no_api_key(self, tmp_path):
        config = AppConfig(oracle=OracleConfig(api_key_env="FILEZEN_TEST_NO_KEY"), data_dir=tmp_path)
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("FILEZEN_TEST_NO_KEY", None)
            assert isinstance(create_oracle(config), NullOracle)

    @patch("filezen.core.oracle.genai")
    def test_key_from_environment(self, mock_genai, tmp_path):
        config = AppConfig(oracle=OracleConfig(api_key_env="FILEZEN_TEST_KEY"), data_dir=tmp_path)
        with patch.dict(os.environ, {"FILEZEN_TEST_KEY": "secret"}):
            oracle = create_oracle(config)

        assert isinstance(oracle, GeminiOracle)
        mock_genai.configure.assert_called_once_with(api_key="secret")
