import os
import unittest
from unittest import mock

from server.gbcite.config import Settings


class TestSettingsFromEnv(unittest.TestCase):
    def test_defaults(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            settings = Settings.from_env()
        self.assertEqual(settings.llm_model, "deepseek-chat")
        self.assertEqual(settings.llm_temperature, 0.3)
        self.assertEqual(settings.llm_max_tokens, 4000)
        self.assertEqual(settings.llm_max_retries, 0)
        self.assertEqual(settings.openai_api_key, "")
        self.assertFalse(settings.llm_configured)
        self.assertTrue(settings.rate_limit_enabled)

    def test_reads_model_endpoint(self) -> None:
        env = {
            "OPENAI_API_KEY": "sk-test",
            "OPENAI_BASE_URL": "  https://api.deepseek.com/v1  ",
            "GBCITE_LLM_MODEL": "other-model",
            "GBCITE_RATE_LIMIT_ENABLED": "off",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            settings = Settings.from_env()
        self.assertEqual(settings.openai_base_url, "https://api.deepseek.com/v1")
        self.assertEqual(settings.llm_model, "other-model")
        self.assertTrue(settings.llm_configured)
        self.assertFalse(settings.rate_limit_enabled)

    def test_blank_base_url_is_not_configured(self) -> None:
        with mock.patch.dict(os.environ, {"OPENAI_API_KEY": "sk-test", "OPENAI_BASE_URL": "   "}, clear=True):
            settings = Settings.from_env()
        self.assertEqual(settings.openai_base_url, "")
        self.assertFalse(settings.llm_configured)

    def test_invalid_values_raise(self) -> None:
        for env in (
            {"GBCITE_LLM_TEMPERATURE": "hot"},
            {"GBCITE_LLM_TEMPERATURE": "3"},
            {"GBCITE_LLM_MAX_RETRIES": "-1"},
            {"GBCITE_TRUST_PROXY": "maybe"},
        ):
            with self.subTest(env=env):
                with mock.patch.dict(os.environ, env, clear=True):
                    with self.assertRaises(ValueError):
                        Settings.from_env()


if __name__ == "__main__":
    unittest.main()
