"""Global pytest configuration."""
import os
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

# Add source root to path BEFORE any package imports
project_root = Path(__file__).parent
src_root = project_root / "02_src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))

GATEWAY_ENV_PREFIXES = ("AI_", "OPENAI_", "CLAUDE_", "ANTHROPIC_")


@pytest.fixture
def clean_env():
    """Environment without gateway variables (including ones loaded from .env)."""
    env = {k: v for k, v in os.environ.items() if not k.startswith(GATEWAY_ENV_PREFIXES)}
    with patch.dict(os.environ, env, clear=True):
        yield
