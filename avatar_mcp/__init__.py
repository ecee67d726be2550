"""Avatar MCP - tool-calling back-end for an AI video avatar console."""

from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root (one level up from the package)
_env_path = Path(__file__).parent.parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path)

__version__ = "0.1.0"
