import os
from pathlib import Path
from typing import Optional

from aws_lambda_powertools.logging import Logger
from dotenv import load_dotenv
from pydantic import BaseModel, Field

logger = Logger()


class AppConfig(BaseModel):
    """Application configuration."""

    app_env: str = Field(
        default="local", description="Application environment (local, dev or prod)"
    )
    version: str = Field(default="unknown", description="Application version")
    commit_hash: str = Field(default="unknown", description="Commit hash")
    dynamodb_table_name: str = Field(
        default="shop-catalog-prod", description="Name of the DynamoDB table"
    )
    aws_region: str = Field(default="eu-west-1", description="AWS region")
    dynamodb_endpoint_url: Optional[str] = Field(
        default=None,
        description="Endpoint override for DynamoDB Local or LocalStack",
    )
    max_attempts: int = Field(
        default=3, ge=1, description="botocore retry attempts per request"
    )
    transaction_item_limit: int = Field(
        default=100,
        ge=2,
        le=100,
        description="Maximum operations in one TransactWriteItems call",
    )
    default_page_size: int = Field(default=30, ge=1, description="Default list page size")
    max_page_size: int = Field(default=100, ge=1, description="Largest accepted page size")
    cart_ttl_days: int = Field(default=30, ge=1, description="Cart lifetime in days")
    notification_ttl_days: int = Field(
        default=90, ge=1, description="Notification lifetime in days"
    )
    audit_ttl_days: int = Field(
        default=365, ge=1, description="Audit log retention hint in days"
    )
    low_stock_threshold: int = Field(
        default=5, ge=0, description="Stock level at or below which a low-stock fact is emitted"
    )
    cdn_url: Optional[str] = Field(
        default=None, description="Base URL prepended to stored image keys"
    )

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Load configuration from environment variables.

        In 'local' mode (default), it first loads variables from a .env file.
        In 'dev' and 'prod' modes, it reads directly from environment variables.
        """

        app_env = os.getenv("APP_ENV", "local").lower()
        logger.debug("App environment", extra={"app_env": app_env})
        if app_env == "local":
            dotenv_path = Path(".env")
            load_dotenv(dotenv_path=dotenv_path, override=True)
            logger.debug("Loaded .env file", extra={"dotenv_path": str(dotenv_path)})
        elif app_env not in ["dev", "prod"]:
            raise ValueError(f"Invalid app environment: {app_env}")

        def _int(name: str, default: int) -> int:
            return int(os.getenv(name, str(default)))

        return cls(
            app_env=app_env,
            version=os.getenv("VERSION", "unknown"),
            commit_hash=os.getenv("COMMIT_HASH", "unknown"),
            dynamodb_table_name=os.getenv("DYNAMODB_TABLE_NAME", "shop-catalog-prod"),
            aws_region=os.getenv("AWS_REGION", "eu-west-1"),
            dynamodb_endpoint_url=os.getenv("DYNAMODB_ENDPOINT_URL") or None,
            max_attempts=_int("DYNAMODB_MAX_ATTEMPTS", 3),
            transaction_item_limit=_int("TRANSACTION_ITEM_LIMIT", 100),
            default_page_size=_int("DEFAULT_PAGE_SIZE", 30),
            max_page_size=_int("MAX_PAGE_SIZE", 100),
            cart_ttl_days=_int("CART_TTL_DAYS", 30),
            notification_ttl_days=_int("NOTIFICATION_TTL_DAYS", 90),
            audit_ttl_days=_int("AUDIT_TTL_DAYS", 365),
            low_stock_threshold=_int("LOW_STOCK_THRESHOLD", 5),
            cdn_url=os.getenv("CDN_URL") or None,
        )
