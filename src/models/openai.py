from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from src.core.config import config


class ChatMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    role: str
    content: Union[str, List[Dict[str, Any]], None] = None


class ChatCompletionRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    model: str = Field(default_factory=lambda: config.default_model)
    messages: List[ChatMessage] = Field(min_length=1)
    stream: Optional[bool] = False


class TokenCheckRequest(BaseModel):
    token: str
