import os
import sys
from typing import Dict, List, Optional


# Configuration
class Config:
    def __init__(self):
        self.deepseek_base_url = os.environ.get(
            "DEEPSEEK_BASE_URL", "https://chat.deepseek.com"
        ).rstrip("/")
        self.host = os.environ.get("HOST", "0.0.0.0")
        self.port = int(os.environ.get("PORT", "8000"))
        self.log_level = os.environ.get("LOG_LEVEL", "INFO")
        self.log_file_path = os.environ.get("LOG_FILE_PATH", "logs/deepseek-proxy.log")

        # Model settings
        self.default_model = os.environ.get("DEFAULT_MODEL", "deepseek-chat")
        self.available_models = self._split_env_list(
            os.environ.get("AVAILABLE_MODELS", "deepseek-chat,deepseek-coder")
        ) or [self.default_model]

        # Credential settings
        self.access_token_ttl = int(os.environ.get("ACCESS_TOKEN_TTL", "3600"))
        # 0 keeps every refresh token ever seen; a positive value bounds the cache (LRU).
        self.credential_cache_max_size = int(
            os.environ.get("CREDENTIAL_CACHE_MAX_SIZE", "0")
        )

        # Connection settings
        self.request_timeout = float(os.environ.get("REQUEST_TIMEOUT", "15"))
        self.completion_timeout = float(os.environ.get("COMPLETION_TIMEOUT", "120"))
        self.max_retry_count = int(os.environ.get("MAX_RETRY_COUNT", "3"))
        self.retry_delay_seconds = float(os.environ.get("RETRY_DELAY_SECONDS", "5"))
        if self.max_retry_count < 1:
            raise ValueError("MAX_RETRY_COUNT must be at least 1")

        self.fallback_message = os.environ.get(
            "FALLBACK_MESSAGE",
            "Service is temporarily unavailable, third-party response error",
        )

    def get_custom_headers(self) -> Dict[str, str]:
        """Get custom upstream headers from CUSTOM_HEADER_* environment variables"""
        custom_headers = {}
        for env_key, env_value in os.environ.items():
            if env_key.startswith("CUSTOM_HEADER_"):
                # CUSTOM_HEADER_X_APP_VERSION -> X-App-Version
                header_name = env_key[len("CUSTOM_HEADER_"):]
                if header_name:
                    header_name = "-".join(
                        part.capitalize() for part in header_name.split("_")
                    )
                    custom_headers[header_name] = env_value
        return custom_headers

    @staticmethod
    def _split_env_list(raw: Optional[str]) -> List[str]:
        if not raw:
            return []
        return [part.strip() for part in raw.split(",") if part.strip()]


try:
    config = Config()
    print(f" Configuration loaded: BASE_URL='{config.deepseek_base_url}'")
except Exception as e:
    print(f"Configuration Error: {e}")
    sys.exit(1)
