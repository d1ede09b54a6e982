class Constants:
    ROLE_ASSISTANT = "assistant"

    CONTENT_TEXT = "text"

    OBJECT_CHAT_COMPLETION = "chat.completion"
    OBJECT_CHAT_COMPLETION_CHUNK = "chat.completion.chunk"

    FINISH_STOP = "stop"

    SSE_DONE = "[DONE]"
    EVENT_STREAM_MEDIA_TYPE = "text/event-stream"

    # Upstream endpoints
    PATH_CURRENT_USER = "/api/v0/users/current"
    PATH_CLEAR_CONTEXT = "/api/v0/chat/clear_context"
    PATH_COMPLETIONS = "/api/v0/chat/completions"

    # Upstream result codes
    UPSTREAM_CODE_OK = 0
    UPSTREAM_CODE_TOKEN_INVALID = 40003

    # The upstream reports no usage figures
    PLACEHOLDER_USAGE = {"prompt_tokens": 1, "completion_tokens": 1, "total_tokens": 2}

    # Browser-like headers the upstream web chat expects
    UPSTREAM_HEADERS = {
        "Accept": "*/*",
        "Accept-Encoding": "gzip, deflate",
        "Accept-Language": "zh-CN,zh;q=0.9",
        "Origin": "https://chat.deepseek.com",
        "Pragma": "no-cache",
        "Referer": "https://chat.deepseek.com/",
        "Sec-Ch-Ua": '"Chromium";v="124", "Google Chrome";v="124", "Not-A.Brand";v="99"',
        "Sec-Ch-Ua-Mobile": "?0",
        "Sec-Ch-Ua-Platform": '"Windows"',
        "Sec-Fetch-Dest": "empty",
        "Sec-Fetch-Mode": "cors",
        "Sec-Fetch-Site": "same-origin",
        "User-Agent": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
        ),
        "X-App-Version": "20240126.0",
    }
