"""Unit tests for application configuration."""

import os
import unittest
from unittest.mock import patch

from pydantic import ValidationError

from src.config.app import AppConfig


class TestAppConfig(unittest.TestCase):
    """Test cases for AppConfig."""

    @patch.dict(
        os.environ,
        {
            "APP_ENV": "dev",
            "DYNAMODB_TABLE_NAME": "shop-dev",
            "TRANSACTION_ITEM_LIMIT": "25",
            "CART_TTL_DAYS": "3",
            "CDN_URL": "https://cdn.example.com",
        },
        clear=True,
    )
    def test_from_env(self):
        # Act
        config = AppConfig.from_env()

        # Assert
        self.assertEqual("dev", config.app_env)
        self.assertEqual("shop-dev", config.dynamodb_table_name)
        self.assertEqual(25, config.transaction_item_limit)
        self.assertEqual(3, config.cart_ttl_days)
        self.assertEqual(90, config.notification_ttl_days)
        self.assertEqual("https://cdn.example.com", config.cdn_url)
        self.assertIsNone(config.dynamodb_endpoint_url)

    @patch.dict(os.environ, {"APP_ENV": "staging"}, clear=True)
    def test_invalid_environment(self):
        with self.assertRaises(ValueError):
            AppConfig.from_env()

    @patch.dict(os.environ, {"APP_ENV": "prod", "TRANSACTION_ITEM_LIMIT": "500"}, clear=True)
    def test_transaction_limit_bounded(self):
        with self.assertRaises(ValidationError):
            AppConfig.from_env()


if __name__ == "__main__":
    unittest.main()
