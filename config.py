"""
Configuration for the Storefront CMS Publisher

Environment variables and settings for article management, AI generation,
Shopify sync and multi-platform publishing.
See .env.example for all available options.
"""
import os
from dotenv import load_dotenv

load_dotenv()

# ===========================================
# Supabase Configuration
# ===========================================
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY")

# ===========================================
# AI Provider Configuration
# ===========================================
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
GOOGLE_AI_API_KEY = os.getenv("GOOGLE_AI_API_KEY") or os.getenv("GEMINI_API_KEY")

ANTHROPIC_MODEL = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-5-20250929")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4-turbo-preview")
GOOGLE_MODEL = os.getenv("GOOGLE_MODEL", "gemini-pro")

# Provider used when a template has no mapping (anthropic, openai, google)
AI_DEFAULT_PROVIDER = os.getenv("AI_DEFAULT_PROVIDER", "anthropic")
AI_FALLBACK_ENABLED = os.getenv("AI_FALLBACK_ENABLED", "true").lower() == "true"

# Service-wide request limits across all providers
AI_RATE_LIMIT_PER_MINUTE = int(os.getenv("AI_RATE_LIMIT_PER_MINUTE", "60"))
AI_RATE_LIMIT_PER_HOUR = int(os.getenv("AI_RATE_LIMIT_PER_HOUR", "1000"))

AI_MAX_RETRIES = int(os.getenv("AI_MAX_RETRIES", "3"))
AI_TIMEOUT_MS = int(os.getenv("AI_TIMEOUT_MS", "30000"))

# ===========================================
# Generation Defaults
# ===========================================
DEFAULT_TONE = os.getenv("DEFAULT_TONE", "professional")
DEFAULT_LENGTH = os.getenv("DEFAULT_LENGTH", "medium")
DEFAULT_TEMPLATE = os.getenv("DEFAULT_TEMPLATE", "article")
PROMPT_VERSION = os.getenv("PROMPT_VERSION", "v2.1")

# Generate-and-publish requests allowed per minute
GENERATION_RATE_LIMIT = int(os.getenv("GENERATION_RATE_LIMIT", "10"))

# ===========================================
# Shopify Configuration
# ===========================================
ENABLE_SHOPIFY_SYNC = os.getenv("ENABLE_SHOPIFY_SYNC", "false").lower() == "true"

# Shopify store name (the part before .myshopify.com)
SHOPIFY_STORE = os.getenv("SHOPIFY_STORE", "")

# Admin API access token from a custom app. When empty, a token is obtained
# with the client credentials grant below.
SHOPIFY_ACCESS_TOKEN = os.getenv("SHOPIFY_ACCESS_TOKEN", "")
SHOPIFY_CLIENT_ID = os.getenv("SHOPIFY_CLIENT_ID", "")
SHOPIFY_CLIENT_SECRET = os.getenv("SHOPIFY_CLIENT_SECRET", "")

SHOPIFY_API_VERSION = os.getenv("SHOPIFY_API_VERSION", "2025-07")

# Default author name for Shopify articles (display name, not a Shopify user)
SHOPIFY_DEFAULT_AUTHOR = os.getenv("SHOPIFY_DEFAULT_AUTHOR", "")

# Blog that new articles are created in (gid://shopify/Blog/<id>)
SHOPIFY_DEFAULT_BLOG_ID = os.getenv("SHOPIFY_DEFAULT_BLOG_ID", "")

# Shared secret used to sign webhook deliveries
SHOPIFY_WEBHOOK_SECRET = os.getenv("SHOPIFY_WEBHOOK_SECRET", "")

# Public storefront URL used for the products.json feed (e.g. https://shop.example.com)
SHOPIFY_STOREFRONT_URL = os.getenv("SHOPIFY_STOREFRONT_URL", "")

# GraphQL retry policy for throttled requests
SHOPIFY_MAX_RETRIES = int(os.getenv("SHOPIFY_MAX_RETRIES", "3"))
SHOPIFY_RETRY_DELAY_MS = int(os.getenv("SHOPIFY_RETRY_DELAY_MS", "1000"))

# Delay between product updates during price reconciliation
PRICE_SYNC_DELAY_MS = int(os.getenv("PRICE_SYNC_DELAY_MS", "100"))

# ===========================================
# WordPress Configuration
# ===========================================
WORDPRESS_URL = os.getenv("WORDPRESS_URL", "")
WORDPRESS_USERNAME = os.getenv("WORDPRESS_USERNAME", "")
# Application password (Users > Profile > Application Passwords)
WORDPRESS_APP_PASSWORD = os.getenv("WORDPRESS_APP_PASSWORD", "")
WORDPRESS_DEFAULT_AUTHOR_ID = os.getenv("WORDPRESS_DEFAULT_AUTHOR_ID", "")

# ===========================================
# Ghost Configuration
# ===========================================
GHOST_URL = os.getenv("GHOST_URL", "")
# Admin API key in "<id>:<secret>" format
GHOST_ADMIN_API_KEY = os.getenv("GHOST_ADMIN_API_KEY", "")

# ===========================================
# Medium Configuration
# ===========================================
MEDIUM_TOKEN = os.getenv("MEDIUM_TOKEN", "")
MEDIUM_AUTHOR_ID = os.getenv("MEDIUM_AUTHOR_ID", "")
MEDIUM_PUBLISH_STATUS = os.getenv("MEDIUM_PUBLISH_STATUS", "draft")

# ===========================================
# Webflow Configuration
# ===========================================
WEBFLOW_API_TOKEN = os.getenv("WEBFLOW_API_TOKEN", "")
WEBFLOW_COLLECTION_ID = os.getenv("WEBFLOW_COLLECTION_ID", "")

# ===========================================
# Webhook Server Configuration
# ===========================================
WEBHOOK_HOST = os.getenv("WEBHOOK_HOST", "0.0.0.0")
WEBHOOK_PORT = int(os.getenv("WEBHOOK_PORT", "8080"))


# ===========================================
# Supabase Headers Helper
# ===========================================
def get_supabase_headers():
    """Get headers for Supabase REST API calls"""
    return {
        "apikey": SUPABASE_SERVICE_KEY,
        "Authorization": f"Bearer {SUPABASE_SERVICE_KEY}",
        "Content-Type": "application/json",
        "Prefer": "return=representation",
    }


# ===========================================
# Validation
# ===========================================
def validate_config(require_ai: bool = False):
    """Validate required configuration is present"""
    missing = []

    if not SUPABASE_URL:
        missing.append("SUPABASE_URL")
    if not SUPABASE_SERVICE_KEY:
        missing.append("SUPABASE_SERVICE_KEY")

    if require_ai and not (ANTHROPIC_API_KEY or OPENAI_API_KEY or GOOGLE_AI_API_KEY):
        missing.append("ANTHROPIC_API_KEY, OPENAI_API_KEY or GOOGLE_AI_API_KEY (at least one)")

    # Shopify needs a store plus either a static token or client credentials
    if ENABLE_SHOPIFY_SYNC:
        if not SHOPIFY_STORE:
            missing.append("SHOPIFY_STORE (required when ENABLE_SHOPIFY_SYNC=true)")
        if not SHOPIFY_ACCESS_TOKEN and not (SHOPIFY_CLIENT_ID and SHOPIFY_CLIENT_SECRET):
            missing.append("SHOPIFY_ACCESS_TOKEN or SHOPIFY_CLIENT_ID/SHOPIFY_CLIENT_SECRET")

    if missing:
        raise ValueError(
            f"Missing required environment variables: {', '.join(missing)}\n"
            "Please copy .env.example to .env and fill in your values."
        )

    return True
