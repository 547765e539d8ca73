from pathlib import Path
from typing import Any, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Normalize the store URL so request paths can be appended safely."""

        super().model_post_init(__context)

        if self.store_url:
            object.__setattr__(self, "store_url", self.store_url.rstrip("/"))

    # Server Settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")
    log_json: Optional[bool] = Field(
        default=None,
        description="Force JSON (true) or console (false) logs; unset picks by log level",
    )

    # Network
    required_chain_id: int = Field(
        default=11155111,
        description="Chain every money-moving action must run on (Sepolia by default)",
    )
    required_chain_name: str = Field(
        default="Sepolia",
        description="Human readable name of the required chain, used in notifications",
    )

    # Wallet Provider
    wallet_rpc_url: str = Field(
        default="",
        description="JSON-RPC endpoint of the wallet/node that manages the user's accounts",
        validation_alias=AliasChoices("wallet_rpc_url", "WALLET_RPC_URL", "ETH_RPC_URL"),
    )
    wallet_poll_interval_seconds: float = Field(
        default=2.0,
        gt=0,
        description="Interval for polling account and chain changes",
    )
    wallet_request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="HTTP timeout for a single wallet RPC request",
    )
    connection_cache_path: Path = Field(
        default=Path.home() / ".crowdchain" / "connection.json",
        description="File holding the cached-connection flag used to auto-reconnect",
    )

    # Transactions
    signature_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Maximum time to wait for the user to approve or reject a signature request",
    )
    receipt_timeout_seconds: float = Field(
        default=180.0,
        gt=0,
        description="Maximum time to wait for a submitted transaction to be mined",
    )
    receipt_poll_interval_seconds: float = Field(
        default=2.0,
        gt=0,
        description="Polling interval while waiting for a transaction receipt",
    )

    # Backing Store
    store_backend: str = Field(
        default="rest",
        description="Backing store implementation: 'rest' or 'memory'",
    )
    store_url: str = Field(
        default="",
        description="Base URL of the REST backing store",
        validation_alias=AliasChoices("store_url", "STORE_URL", "SUPABASE_URL"),
    )
    store_api_key: str = Field(
        default="",
        description="API key for the REST backing store",
        validation_alias=AliasChoices("store_api_key", "STORE_API_KEY", "SUPABASE_ANON_KEY"),
    )
    store_timeout_seconds: float = Field(default=30.0, gt=0, description="Backing store request timeout")

    @property
    def required_chain_id_hex(self) -> str:
        return hex(self.required_chain_id)

    @property
    def has_wallet_rpc(self) -> bool:
        return bool(self.wallet_rpc_url)

    @property
    def uses_memory_store(self) -> bool:
        return self.store_backend.lower() == "memory"

    def resolve_store_url(self) -> Optional[str]:
        if self.uses_memory_store:
            return None
        return self.store_url or None


# Global settings instance
settings = Settings()
