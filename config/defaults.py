"""Default configuration values."""

DEFAULT_MODEL_NAME = "gpt-4o"
DEFAULT_PROVIDER = "openai"

# Display fallbacks for assistant messages
DEFAULT_ASSISTANT_NAME = "AI Assistant"
DEFAULT_ASSISTANT_IMAGE_URL = "/avatars/01.png"

# Context budget
APPROX_CHARS_PER_TOKEN = 4
DEFAULT_CONTEXT_TOKENS = 12000  # conservative when a model does not advertise its window
CONTEXT_UTILIZATION = 0.8
MIN_EFFECTIVE_TOKENS = 2000
RETRY_MIN_TAIL_MESSAGES = 8
MAX_CHARS_PER_MESSAGE = 4000

# Metadata keys that may carry a model's context window, in lookup order
CONTEXT_WINDOW_KEYS = ("context_window", "contextWindow", "context", "max_context")
CONTEXT_WINDOW_DETAIL_KEYS = ("context_window", "context")

# Chat titles
CHAT_TITLE_MAX_CHARS = 50

# Models seeded into the in-memory catalog
AVAILABLE_MODELS = [
    {
        "id": "gpt-4o",
        "name": "gpt-4o",
        "meta": {
            "context_window": 128000,
            "profile_image_url": "/models/openai.png",
        },
    },
    {
        "id": "gpt-4o-mini",
        "name": "gpt-4o-mini",
        "meta": {
            "context_window": 128000,
            "profile_image_url": "/models/openai.png",
        },
    },
    {
        "id": "gpt-4.1",
        "name": "gpt-4.1",
        "meta": {
            "details": {"context_window": 1047576},
            "profile_image_url": "/models/openai.png",
        },
    },
]
