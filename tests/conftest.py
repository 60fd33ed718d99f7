import os
import warnings

# Ignore warnings from app.shared
warnings.filterwarnings("ignore", category=DeprecationWarning, module="app.shared.*")

# Set test environment variables
os.environ.update(
    {
        "DEMO_MODE": "true",
        "API_TOKEN_SECRET": "test-api-token-secret-0123456789abcdef",
        "X402_FALLBACK_PAY_TO": "PlatformFallbackWallet1111111111111111111111",
    }
)

# Import database fixtures so they are available to all tests
from tests.fixtures.mongo_fixtures import *  # noqa: E402, F403
from tests.fixtures.stream_fixtures import *  # noqa: E402, F403
