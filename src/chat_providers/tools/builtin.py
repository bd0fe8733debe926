"""Declarations of the built-in tools."""

from __future__ import annotations

from chat_providers.tools.base import Property, Tool
from chat_providers.tools.catalog import ToolCatalog, ToolCatalogBuilder

TOOL_WEATHER = "weather"
TOOL_SEARCH = "search"
TOOL_FETCH_URL = "fetch_url"
TOOL_GENERATE_IMAGE = "generate_image"
TOOL_SEARCH_IMAGES = "search_images"
TOOL_FETCH_YT_COMMENTS = "fetch_yt_comments"
TOOL_FETCH_TG_POSTS = "fetch_tg_posts"
TOOL_FETCH_TG_POST_COMMENTS = "fetch_tg_post_comments"

TG_MAX_DURATION_HOURS = 720

_TIME_LIMITS = ("", "d", "w", "m", "y")
_TIME_LIMIT_HELP = (
    "Time range for search results: 'd' (last 24h), 'w' (last week), "
    "'m' (last month), 'y' (last year). Leave empty for all time."
)

WEATHER = Tool.define(
    TOOL_WEATHER,
    "Fetches comprehensive weather forecasts",
    {
        "location": Property("string", "City name in English (e.g., `London`, `New+York`)"),
        "days": Property(
            "integer",
            "Number of forecast days (1-3). 1 - Today, 2 - Today and tomorrow, etc.",
        ),
    },
    required=("location", "days"),
)

SEARCH = Tool.define(
    TOOL_SEARCH,
    "Search with duckduckgo, use when need more relevant information.",
    {
        "query": Property("string", "Search query"),
        "max_results": Property("integer", "Max search results. Min: 3, max: 10"),
        "time_limit": Property("string", _TIME_LIMIT_HELP, enum=_TIME_LIMITS),
    },
    required=("query", "max_results"),
)

FETCH_URL = Tool.define(
    TOOL_FETCH_URL,
    "Fetch full content from URL. Use when you need more info from URL "
    "(e.g. after search) or if user asks.",
    {"url": Property("string")},
    required=("url",),
)

GENERATE_IMAGE = Tool.define(
    TOOL_GENERATE_IMAGE,
    "Generate image with prompt",
    {"prompt": Property("string", "Detailed prompt in English")},
    required=("prompt",),
)

SEARCH_IMAGES = Tool.define(
    TOOL_SEARCH_IMAGES,
    "Search images in internet",
    {
        "keywords": Property("string", "Search keywords"),
        "max_results": Property("integer", "Limit images in result. Min 1, max 5"),
        "time_limit": Property("string", _TIME_LIMIT_HELP, enum=_TIME_LIMITS),
    },
    required=("keywords", "max_results"),
)

FETCH_YT_COMMENTS = Tool.define(
    TOOL_FETCH_YT_COMMENTS,
    "Fetch comments from YouTube video",
    {
        "url": Property("string", "YouTube video URL"),
        "max": Property("integer", "Maximum number of comments to fetch (default: 50, max: 100)"),
    },
    required=("url",),
)

FETCH_TG_POSTS = Tool.define(
    TOOL_FETCH_TG_POSTS,
    "Fetch posts from telegram channel. By default uses limit=10. Use duration for "
    'time period (e.g. "last 24h") OR limit for exact count. Can use both only if '
    'explicitly requested (e.g. "last 5 posts from 24h")',
    {
        "channel_name": Property("string", "Channel username"),
        "duration": Property(
            "string",
            "Only use when time period is specified (e.g. 'posts from last 24h'). "
            f"Must end with 'h'. Max: {TG_MAX_DURATION_HOURS}h",
        ),
        "limit": Property("integer", "Use when post count is specified (e.g. '5 posts'). Max: 100"),
    },
    required=("channel_name",),
)

FETCH_TG_POST_COMMENTS = Tool.define(
    TOOL_FETCH_TG_POST_COMMENTS,
    "Fetch comments from telegram post. Accepts either channel_name with post_id or "
    "automatically extracts them from telegram URL (e.g. https://t.me/channel_name/post_id)",
    {
        "channel_name": Property(
            "string", "Channel username (can be extracted from https://t.me/channel_name/post_id)",
        ),
        "post_id": Property(
            "integer", "Post ID (can be extracted from https://t.me/channel_name/post_id)",
        ),
    },
    required=("channel_name", "post_id"),
)


def build_default_catalog(telegram_enabled: bool = False) -> ToolCatalog:
    """Catalog of the built-in tools; Telegram tools need a Telegram client."""
    return (
        ToolCatalogBuilder()
        .add(WEATHER)
        .add(SEARCH)
        .add(FETCH_URL)
        .add(GENERATE_IMAGE)
        .add(SEARCH_IMAGES)
        .add(FETCH_YT_COMMENTS)
        .add_if(telegram_enabled, FETCH_TG_POSTS)
        .add_if(telegram_enabled, FETCH_TG_POST_COMMENTS)
        .build()
    )
